from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "applicant-triage"
    environment: str = "dev"
    log_level: str = "INFO"
    airtable_api_base: str = "https://api.airtable.com/v0"
    airtable_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("TRIAGE_AIRTABLE_TOKEN", "AIRTABLE"),
    )
    airtable_base_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("TRIAGE_AIRTABLE_BASE_ID", "AIRTABLE_BASE_ID"),
    )
    airtable_table_name: str = Field(
        default="Applications",
        validation_alias=AliasChoices("TRIAGE_AIRTABLE_TABLE_NAME", "AIRTABLE_TABLE_NAME"),
    )
    provider_timeout_seconds: float = 10.0
    page_size: int = Field(default=100, ge=1, le=100)
    initial_load_limit: int = 500
    sort_field: str = "Created"
    stage_field: str = "Stage"
    flag_field: str = "Flag"
    notes_field: str = "Notes"
    write_delay_seconds: float = 5.0
    auto_hide_rejected: bool = True
    state_path: str | None = None
    otel_enabled: bool = False
    otel_service_name: str = "applicant-triage"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0

    model_config = SettingsConfigDict(env_prefix="TRIAGE_", extra="ignore", populate_by_name=True)


@lru_cache
def get_settings() -> Settings:
    return Settings()
