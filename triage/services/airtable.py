from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import quote

import httpx
from opentelemetry import trace
from pydantic import ValidationError

from triage.core.config import Settings, get_settings
from triage.core.telemetry import candidate_span
from triage.schemas.records import RawRecord

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

MAX_PAGE_SIZE = 100


class ProviderError(Exception):
    """Base records provider error."""


class ProviderFetchError(ProviderError):
    """Raised when a page of records cannot be fetched."""


class ProviderWriteError(ProviderError):
    """Raised when a record update is rejected or cannot be sent."""


class ConfigurationError(ProviderError):
    """Raised when provider credentials are missing."""


@dataclass(slots=True)
class RecordPage:
    records: list[RawRecord]
    next_cursor: str | None = None


@dataclass(slots=True)
class RecordBatch:
    records: list[RawRecord] = field(default_factory=list)
    next_cursor: str | None = None

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None


class RecordsProvider(Protocol):
    async def fetch_page(self, page_size: int, cursor: str | None = None) -> RecordPage: ...

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> dict[str, Any]: ...


class AirtableClient:
    def __init__(
        self,
        *,
        base_id: str,
        token: str,
        table_name: str = "Applications",
        api_base: str = "https://api.airtable.com/v0",
        sort_field: str = "Created",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.table_url = f"{api_base.rstrip('/')}/{base_id}/{quote(table_name, safe='')}"
        self.sort_field = sort_field
        self.timeout_seconds = timeout_seconds
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient | None = None) -> AirtableClient:
        if not settings.airtable_token:
            raise ConfigurationError("AIRTABLE token not configured. Set the AIRTABLE environment variable.")
        if not settings.airtable_base_id:
            raise ConfigurationError("AIRTABLE_BASE_ID not configured. Set the AIRTABLE_BASE_ID environment variable.")
        return cls(
            base_id=settings.airtable_base_id,
            token=settings.airtable_token,
            table_name=settings.airtable_table_name,
            api_base=settings.airtable_api_base,
            sort_field=settings.sort_field,
            timeout_seconds=settings.provider_timeout_seconds,
            client=client,
        )

    async def fetch_page(self, page_size: int, cursor: str | None = None) -> RecordPage:
        params = {
            "pageSize": str(max(1, min(MAX_PAGE_SIZE, page_size))),
            "sort[0][field]": self.sort_field,
            "sort[0][direction]": "desc",
        }
        if cursor:
            params["offset"] = cursor

        with tracer.start_as_current_span("provider.fetch_page") as span:
            span.set_attribute("provider.page_size", int(params["pageSize"]))
            try:
                response = await self._request("GET", self.table_url, params=params)
            except httpx.HTTPError as exc:
                raise ProviderFetchError(f"Airtable request failed: {exc}") from exc

            if not response.is_success:
                raise ProviderFetchError(_error_message(response))

            payload = response.json()
            try:
                records = [RawRecord.model_validate(row) for row in payload.get("records", [])]
            except ValidationError as exc:
                raise ProviderFetchError(f"Airtable returned malformed records: {exc}") from exc
            span.set_attribute("provider.record_count", len(records))
            return RecordPage(records=records, next_cursor=payload.get("offset") or None)

    async def fetch_records(self, max_records: int = 500, cursor: str | None = None) -> RecordBatch:
        """Fetch pages until ``max_records`` are collected or the table is exhausted.

        The returned cursor points at the first record not yet fetched, so a
        later call can continue where this one stopped.
        """
        batch = RecordBatch(next_cursor=cursor)
        while len(batch.records) < max_records:
            page = await self.fetch_page(min(MAX_PAGE_SIZE, max_records - len(batch.records)), batch.next_cursor)
            batch.records.extend(page.records)
            batch.next_cursor = page.next_cursor
            if page.next_cursor is None:
                break
        logger.info("fetched %s records from airtable (has_more=%s)", len(batch.records), batch.has_more)
        return batch

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        with candidate_span("provider.update_record", record_id, fields=sorted(fields)):
            try:
                response = await self._request(
                    "PATCH",
                    f"{self.table_url}/{quote(record_id, safe='')}",
                    json={"fields": fields},
                )
            except httpx.HTTPError as exc:
                raise ProviderWriteError(f"Airtable request failed: {exc}") from exc

            if not response.is_success:
                raise ProviderWriteError(_error_message(response))
            return response.json()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, url, headers=self.headers, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await client.request(method, url, headers=self.headers, **kwargs)


def _error_message(response: httpx.Response) -> str:
    detail = response.reason_phrase
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            detail = error["message"]
        elif isinstance(error, str):
            detail = error
    return f"Airtable API error: {response.status_code} - {detail}"


def get_provider() -> AirtableClient:
    return AirtableClient.from_settings(get_settings())
