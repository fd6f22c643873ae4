from __future__ import annotations

from typing import Any

import pytest

from triage.schemas.records import RawRecord
from triage.services.airtable import ProviderFetchError, ProviderWriteError, RecordPage


def make_record(record_id: str, created_time: str, stage: str | None = None, **fields: Any) -> RawRecord:
    if stage is not None:
        fields["Stage"] = stage
    return RawRecord(id=record_id, created_time=created_time, fields=fields)


class FakeProvider:
    """Records provider double: serves fixed pages, records every update."""

    def __init__(self, pages: list[list[RawRecord]] | None = None) -> None:
        self.pages = pages if pages is not None else [[]]
        self.fetch_calls: list[tuple[int, str | None]] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.fail_fetch = False
        self.failing_ids: set[str] = set()

    async def fetch_page(self, page_size: int, cursor: str | None = None) -> RecordPage:
        self.fetch_calls.append((page_size, cursor))
        if self.fail_fetch:
            raise ProviderFetchError("Airtable API error: 500 - upstream unavailable")
        index = int(cursor) if cursor else 0
        next_cursor = str(index + 1) if index + 1 < len(self.pages) else None
        return RecordPage(records=list(self.pages[index]), next_cursor=next_cursor)

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        self.updates.append((record_id, dict(fields)))
        if record_id in self.failing_ids:
            raise ProviderWriteError(f"Airtable API error: 422 - cannot update {record_id}")
        return {"id": record_id, "fields": dict(fields)}


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
