from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RawRecord(BaseModel):
    id: str
    created_time: str = Field(alias="createdTime")
    fields: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class CandidatesPageOut(BaseModel):
    success: bool = True
    candidates: list[dict[str, Any]] = Field(default_factory=list)
    offset: str | None = None
    has_more: bool = Field(default=False, serialization_alias="hasMore")


class RecordUpdateRequest(BaseModel):
    record_id: str = Field(alias="recordId", min_length=1)
    fields: dict[str, Any]

    model_config = ConfigDict(populate_by_name=True)


class RecordUpdateOut(BaseModel):
    success: bool = True
    record: dict[str, Any] = Field(default_factory=dict)


class ProviderConfigOut(BaseModel):
    has_token: bool = Field(serialization_alias="hasToken")
    has_base_id: bool = Field(serialization_alias="hasBaseId")
    has_table_name: bool = Field(serialization_alias="hasTableName")
    ready: bool


class HealthOut(BaseModel):
    status: str = "ok"
    config: ProviderConfigOut
