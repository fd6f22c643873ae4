from fastapi import APIRouter, Depends

from triage.core.config import Settings, get_settings
from triage.schemas.records import HealthOut, ProviderConfigOut

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/api/health", response_model=HealthOut)
async def provider_health(settings: Settings = Depends(get_settings)) -> HealthOut:
    has_token = bool(settings.airtable_token)
    has_base_id = bool(settings.airtable_base_id)
    has_table_name = bool(settings.airtable_table_name)
    return HealthOut(
        config=ProviderConfigOut(
            has_token=has_token,
            has_base_id=has_base_id,
            has_table_name=has_table_name,
            ready=has_token and has_base_id and has_table_name,
        )
    )
