import json
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from triage.api.deps import require_provider
from triage.main import app
from triage.services.airtable import AirtableClient

RECORDS = [
    {
        "id": "rec1",
        "createdTime": "2025-02-01T09:30:00.000Z",
        "fields": {"Name": "Ada Lovelace", "Stage": "Stage 2", "Flag": True, "AI Score": 91},
    },
    {"id": "rec2", "createdTime": "2025-01-31T09:30:00.000Z", "fields": {"First": "Alan"}},
]


class AirtableStub:
    def __init__(self) -> None:
        self.patches: list[tuple[str, dict[str, Any]]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "PATCH":
            body = json.loads(request.content)
            record_id = request.url.path.rsplit("/", 1)[-1]
            self.patches.append((record_id, body))
            if record_id == "recLocked":
                return httpx.Response(403, json={"error": {"message": "locked"}}, request=request)
            return httpx.Response(200, json={"id": record_id, "fields": body["fields"]}, request=request)
        if request.url.params.get("offset") == "broken":
            return httpx.Response(500, json={"error": "SERVER_ERROR"}, request=request)
        return httpx.Response(200, json={"records": RECORDS, "offset": "itrNext"}, request=request)


@pytest.fixture
def stub() -> AirtableStub:
    return AirtableStub()


@pytest.fixture
def records_client(stub: AirtableStub) -> TestClient:
    provider = AirtableClient(
        base_id="appBase",
        token="token",
        table_name="Applications",
        api_base="https://airtable.test/v0",
        client=httpx.AsyncClient(transport=httpx.MockTransport(stub.handler)),
    )
    app.dependency_overrides[require_provider] = lambda: provider

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


def test_list_candidates_maps_fields(records_client: TestClient) -> None:
    response = records_client.get("/api/candidates", params={"limit": 2})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["hasMore"] is True
    assert payload["offset"] == "itrNext"
    first, second = payload["candidates"]
    assert first["id"] == "rec1"
    assert first["first_name"] == "Ada"
    assert first["last_name"] == "Lovelace"
    assert first["stage"] == "Stage 2"
    assert first["flag"] is True
    assert first["ai_score"] == 91
    assert second["first_name"] == "Alan"
    assert second["company"] == "No Project"
    assert second["ai_score"] == 50


def test_list_candidates_maps_provider_errors_to_502(records_client: TestClient) -> None:
    response = records_client.get("/api/candidates", params={"offset": "broken"})

    assert response.status_code == 502
    assert "Airtable API error: 500" in response.json()["detail"]


def test_update_candidate_patches_record(records_client: TestClient, stub: AirtableStub) -> None:
    response = records_client.post(
        "/api/candidates/update",
        json={"recordId": "rec1", "fields": {"Stage": "Interview"}},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "record": {"id": "rec1", "fields": {"Stage": "Interview"}}}
    assert stub.patches == [("rec1", {"fields": {"Stage": "Interview"}})]


def test_update_candidate_requires_fields(records_client: TestClient, stub: AirtableStub) -> None:
    response = records_client.post("/api/candidates/update", json={"recordId": "rec1", "fields": {}})

    assert response.status_code == 400
    assert stub.patches == []


def test_update_candidate_maps_write_errors_to_502(records_client: TestClient) -> None:
    response = records_client.post(
        "/api/candidates/update",
        json={"recordId": "recLocked", "fields": {"Flag": False}},
    )

    assert response.status_code == 502
    assert "locked" in response.json()["detail"]
