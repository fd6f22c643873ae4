from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator

from triage.schemas.records import RawRecord
from triage.services.airtable import RecordsProvider
from triage.services.field_mapping import map_fields

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Candidate:
    id: str
    created_time: datetime
    remote_stage: str | None
    attributes: dict[str, Any] = field(default_factory=dict)
    flag: bool = False
    notes: str = ""
    ai_score: int = 50
    arrival: int = 0

    @property
    def display_name(self) -> str:
        first = str(self.attributes.get("first_name") or "")
        last = str(self.attributes.get("last_name") or "")
        return f"{first} {last}".strip()

    @property
    def company(self) -> str:
        return str(self.attributes.get("company") or "")


@dataclass(slots=True)
class LoadResult:
    appended: list[Candidate]
    next_cursor: str | None
    has_more: bool


def candidate_from_record(record: RawRecord, arrival: int = 0) -> Candidate:
    attributes = map_fields(record.fields)
    stage = attributes.pop("stage", None)
    flag = attributes.pop("flag", False)
    notes = attributes.pop("notes", "")
    return Candidate(
        id=record.id,
        created_time=_parse_created_time(record.created_time),
        remote_stage=_as_text(stage),
        attributes=attributes,
        flag=bool(flag),
        notes=_as_text(notes) or "",
        ai_score=attributes.pop("ai_score"),
        arrival=arrival,
    )


class CandidateStore:
    """In-memory candidate collection in provider arrival order.

    The store only grows within a session: the first load replaces the
    collection, loads with a cursor append to it.
    """

    def __init__(self, provider: RecordsProvider, *, page_size: int = 100, initial_limit: int = 500) -> None:
        self.provider = provider
        self.page_size = page_size
        self.initial_limit = initial_limit
        self._candidates: dict[str, Candidate] = {}
        self._next_cursor: str | None = None
        self._loaded = False

    def __contains__(self, candidate_id: object) -> bool:
        return candidate_id in self._candidates

    def __len__(self) -> int:
        return len(self._candidates)

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self._candidates.values())

    def get(self, candidate_id: str) -> Candidate | None:
        return self._candidates.get(candidate_id)

    def candidates(self) -> list[Candidate]:
        return list(self._candidates.values())

    @property
    def next_cursor(self) -> str | None:
        return self._next_cursor

    @property
    def has_more(self) -> bool:
        return self._next_cursor is not None

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self, cursor: str | None = None) -> LoadResult:
        limit = self.initial_limit if cursor is None else self.page_size
        records: list[RawRecord] = []
        next_cursor = cursor
        while len(records) < limit:
            page = await self.provider.fetch_page(min(self.page_size, limit - len(records)), next_cursor)
            records.extend(page.records)
            next_cursor = page.next_cursor
            if next_cursor is None:
                break

        if cursor is None:
            self._candidates = {}
        appended: list[Candidate] = []
        for record in records:
            if record.id in self._candidates:
                logger.warning("skipping duplicate record id=%s", record.id)
                continue
            candidate = candidate_from_record(record, arrival=len(self._candidates))
            self._candidates[candidate.id] = candidate
            appended.append(candidate)

        self._next_cursor = next_cursor
        self._loaded = True
        logger.info(
            "loaded %s candidates (total=%s, has_more=%s)",
            len(appended),
            len(self._candidates),
            self.has_more,
        )
        return LoadResult(appended=appended, next_cursor=next_cursor, has_more=next_cursor is not None)

    async def load_more(self) -> LoadResult:
        if not self.has_more:
            return LoadResult(appended=[], next_cursor=None, has_more=False)
        return await self.load(self._next_cursor)


def _as_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, list) and value and isinstance(value[0], str):
        return value[0]
    return None


def _parse_created_time(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        logger.warning("unparseable createdTime=%r; sorting as epoch", value)
        return datetime.fromtimestamp(0, tz=timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed
