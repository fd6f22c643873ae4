from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class CandidateViewOut(BaseModel):
    id: str
    name: str
    company: str
    stage: str
    style: str
    ai_score: int
    active: bool
    flagged: bool
    badge_visible: bool
    hidden: bool
    pending_seconds: int | None = None

    model_config = ConfigDict(from_attributes=True)


class ProjectionOut(BaseModel):
    visible: list[CandidateViewOut] = Field(default_factory=list)
    hidden: list[CandidateViewOut] = Field(default_factory=list)
    counts: dict[str, int] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class NoticeOut(BaseModel):
    level: Literal["info", "error"]
    message: str
    candidate_id: str | None = None
    at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewStateOut(BaseModel):
    status: Literal["idle", "ready", "failed"]
    error: str | None = None
    load_more_failed: bool = False
    has_more: bool = False
    current_id: str | None = None
    descending: bool = True
    show_hidden: bool = False
    can_undo: bool = False
    can_redo: bool = False
    has_pending: bool = False
    projection: ProjectionOut
    notices: list[NoticeOut] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class StageRequest(BaseModel):
    stage: str = Field(min_length=1)


class NotesRequest(BaseModel):
    notes: str


class AdjacentRequest(BaseModel):
    direction: Literal[1, -1] = 1


class PreferencesRequest(BaseModel):
    descending: bool | None = None
    show_hidden: bool | None = None
