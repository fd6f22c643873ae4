#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, unquote, urlparse

_STAGES = ("Stage 1", "Stage 2", "Rejection", "", "Waitlist")


def _seed_records(count: int) -> list[dict[str, Any]]:
    started = datetime(2025, 1, 1, tzinfo=timezone.utc)
    records: list[dict[str, Any]] = []
    for index in range(count):
        fields: dict[str, Any] = {
            "First Name": f"Applicant{index:03d}",
            "Last Name": "Example",
            "Email": f"applicant{index:03d}@example.com",
            "Project name": f"Project {index:03d}",
        }
        stage = _STAGES[index % len(_STAGES)]
        if stage:
            fields["Stage"] = stage
        records.append(
            {
                "id": f"rec{index:014d}",
                "createdTime": (started + timedelta(hours=index)).isoformat().replace("+00:00", "Z"),
                "fields": fields,
            }
        )
    records.reverse()
    return records


class MockAirtableHandler(BaseHTTPRequestHandler):
    server_version = "MockAirtable/1.0"
    records: list[dict[str, Any]] = []
    token = "mock-token"

    def do_GET(self) -> None:  # noqa: N802 - stdlib handler signature
        parsed = urlparse(self.path)
        if parsed.path == "/healthz":
            self._write_json(HTTPStatus.OK, {"status": "ok"})
            return
        if not self._authorized():
            return

        query = parse_qs(parsed.query)
        page_size = max(1, min(100, int(query.get("pageSize", ["100"])[0])))
        start = int(query.get("offset", ["0"])[0] or 0)
        page = self.records[start : start + page_size]
        payload: dict[str, object] = {"records": page}
        if start + page_size < len(self.records):
            payload["offset"] = str(start + page_size)
        self._write_json(HTTPStatus.OK, payload)

    def do_PATCH(self) -> None:  # noqa: N802 - stdlib handler signature
        if not self._authorized():
            return
        record_id = unquote(urlparse(self.path).path.rsplit("/", maxsplit=1)[-1])
        length = int(self.headers.get("Content-Length", "0"))
        body = json.loads(self.rfile.read(length) or b"{}")
        fields = body.get("fields")
        if not isinstance(fields, dict):
            self._write_json(HTTPStatus.UNPROCESSABLE_ENTITY, {"error": {"message": "fields required"}})
            return

        for record in self.records:
            if record["id"] == record_id:
                record["fields"].update(fields)
                self._write_json(HTTPStatus.OK, record)
                return
        self._write_json(HTTPStatus.NOT_FOUND, {"error": {"message": "Could not find record"}})

    def log_message(self, _: str, *args: object) -> None:
        # Keep logs terse for local runs.
        if args:
            print("mock-airtable:", *args)

    def _authorized(self) -> bool:
        if self.headers.get("Authorization", "") == f"Bearer {self.token}":
            return True
        self._write_json(HTTPStatus.UNAUTHORIZED, {"error": {"message": "invalid token"}})
        return False

    def _write_json(self, status: HTTPStatus, payload: dict[str, object]) -> None:
        raw = json.dumps(payload).encode("utf-8")
        self.send_response(status.value)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)


def main() -> None:
    parser = argparse.ArgumentParser(description="Mock Airtable table endpoint for local triage runs.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=54330)
    parser.add_argument("--records", type=int, default=250)
    parser.add_argument("--token", default="mock-token")
    args = parser.parse_args()

    MockAirtableHandler.records = _seed_records(args.records)
    MockAirtableHandler.token = args.token
    server = ThreadingHTTPServer((args.host, args.port), MockAirtableHandler)
    print(f"mock-airtable listening on http://{args.host}:{args.port}", flush=True)
    print(
        f"set TRIAGE_AIRTABLE_API_BASE=http://{args.host}:{args.port}/v0 AIRTABLE={args.token} AIRTABLE_BASE_ID=appMock",
        flush=True,
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
