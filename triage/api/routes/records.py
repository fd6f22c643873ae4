import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from triage.api.deps import require_provider
from triage.review.store import Candidate, candidate_from_record
from triage.schemas.records import CandidatesPageOut, RecordUpdateOut, RecordUpdateRequest
from triage.services.airtable import ProviderFetchError, ProviderWriteError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=CandidatesPageOut)
async def list_candidates(
    provider=Depends(require_provider),
    limit: int = Query(default=500, ge=1, le=5000),
    offset: str | None = Query(default=None),
) -> CandidatesPageOut:
    try:
        batch = await provider.fetch_records(max_records=limit, cursor=offset)
    except ProviderFetchError as exc:
        logger.warning("error fetching candidates: %s", exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    return CandidatesPageOut(
        candidates=[
            _candidate_payload(candidate_from_record(record, arrival=index))
            for index, record in enumerate(batch.records)
        ],
        offset=batch.next_cursor,
        has_more=batch.has_more,
    )


@router.post("/update", response_model=RecordUpdateOut)
async def update_candidate(payload: RecordUpdateRequest, provider=Depends(require_provider)) -> RecordUpdateOut:
    if not payload.fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="fields must not be empty")
    try:
        record = await provider.update_record(payload.record_id, payload.fields)
    except ProviderWriteError as exc:
        logger.warning("error updating candidate id=%s: %s", payload.record_id, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return RecordUpdateOut(record=record)


def _candidate_payload(candidate: Candidate) -> dict[str, Any]:
    return {
        **candidate.attributes,
        "id": candidate.id,
        "created_time": candidate.created_time.isoformat(),
        "stage": candidate.remote_stage,
        "flag": candidate.flag,
        "notes": candidate.notes,
        "ai_score": candidate.ai_score,
    }
