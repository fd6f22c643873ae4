from fastapi import APIRouter, Depends, HTTPException, status

from triage.api.deps import require_review_session
from triage.review.session import ReviewSession, UnknownCandidateError
from triage.schemas.review import (
    AdjacentRequest,
    NotesRequest,
    PreferencesRequest,
    ReviewStateOut,
    StageRequest,
)
from triage.services.airtable import ProviderFetchError

router = APIRouter()


def _state(session: ReviewSession) -> ReviewStateOut:
    return ReviewStateOut.model_validate(session.view(), from_attributes=True)


def _not_found(exc: UnknownCandidateError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.get("", response_model=ReviewStateOut)
async def get_review_state(session: ReviewSession = Depends(require_review_session)) -> ReviewStateOut:
    return _state(session)


@router.post("/load", response_model=ReviewStateOut)
async def load_candidates(session: ReviewSession = Depends(require_review_session)) -> ReviewStateOut:
    try:
        await session.load()
    except ProviderFetchError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return _state(session)


@router.post("/load-more", response_model=ReviewStateOut)
async def load_more_candidates(session: ReviewSession = Depends(require_review_session)) -> ReviewStateOut:
    try:
        await session.load_more()
    except ProviderFetchError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return _state(session)


@router.post("/select/{candidate_id}", response_model=ReviewStateOut)
async def select_candidate(
    candidate_id: str,
    session: ReviewSession = Depends(require_review_session),
) -> ReviewStateOut:
    try:
        session.select(candidate_id)
    except UnknownCandidateError as exc:
        raise _not_found(exc) from exc
    return _state(session)


@router.post("/candidates/{candidate_id}/stage", response_model=ReviewStateOut)
async def set_candidate_stage(
    candidate_id: str,
    payload: StageRequest,
    session: ReviewSession = Depends(require_review_session),
) -> ReviewStateOut:
    try:
        session.set_stage(candidate_id, payload.stage)
    except UnknownCandidateError as exc:
        raise _not_found(exc) from exc
    return _state(session)


@router.post("/candidates/{candidate_id}/hide", response_model=ReviewStateOut)
async def hide_candidate(
    candidate_id: str,
    session: ReviewSession = Depends(require_review_session),
) -> ReviewStateOut:
    try:
        session.hide(candidate_id)
    except UnknownCandidateError as exc:
        raise _not_found(exc) from exc
    return _state(session)


@router.post("/candidates/{candidate_id}/flag", response_model=ReviewStateOut)
async def toggle_candidate_flag(
    candidate_id: str,
    session: ReviewSession = Depends(require_review_session),
) -> ReviewStateOut:
    try:
        await session.toggle_flag(candidate_id)
    except UnknownCandidateError as exc:
        raise _not_found(exc) from exc
    return _state(session)


@router.post("/candidates/{candidate_id}/notes", response_model=ReviewStateOut)
async def save_candidate_notes(
    candidate_id: str,
    payload: NotesRequest,
    session: ReviewSession = Depends(require_review_session),
) -> ReviewStateOut:
    try:
        await session.save_notes(candidate_id, payload.notes)
    except UnknownCandidateError as exc:
        raise _not_found(exc) from exc
    return _state(session)


@router.post("/undo", response_model=ReviewStateOut)
async def undo(session: ReviewSession = Depends(require_review_session)) -> ReviewStateOut:
    session.undo()
    return _state(session)


@router.post("/redo", response_model=ReviewStateOut)
async def redo(session: ReviewSession = Depends(require_review_session)) -> ReviewStateOut:
    session.redo()
    return _state(session)


@router.post("/next", response_model=ReviewStateOut)
async def next_untriaged(session: ReviewSession = Depends(require_review_session)) -> ReviewStateOut:
    session.next_untriaged()
    return _state(session)


@router.post("/adjacent", response_model=ReviewStateOut)
async def adjacent(
    payload: AdjacentRequest,
    session: ReviewSession = Depends(require_review_session),
) -> ReviewStateOut:
    session.adjacent(payload.direction)
    return _state(session)


@router.post("/keys/{key}", response_model=ReviewStateOut)
async def press_key(key: str, session: ReviewSession = Depends(require_review_session)) -> ReviewStateOut:
    if len(key) != 1:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="key must be one character")
    await session.press(key)
    return _state(session)


@router.post("/preferences", response_model=ReviewStateOut)
async def update_preferences(
    payload: PreferencesRequest,
    session: ReviewSession = Depends(require_review_session),
) -> ReviewStateOut:
    if payload.descending is not None:
        session.set_sort(payload.descending)
    if payload.show_hidden is not None:
        session.set_show_hidden(payload.show_hidden)
    return _state(session)
