from fastapi import HTTPException, status

from triage.review.session import ReviewSession, get_review_session
from triage.services.airtable import AirtableClient, ConfigurationError, get_provider


def require_provider() -> AirtableClient:
    try:
        return get_provider()
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


def require_review_session() -> ReviewSession:
    try:
        return get_review_session()
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
