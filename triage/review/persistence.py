from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class HistoryEntryState(BaseModel):
    candidate_id: str
    old_stage: str
    new_stage: str
    timestamp: float
    hidden_delta: bool = False


class ReviewSnapshot(BaseModel):
    """Locally persisted review state. The flag holder is not stored; it comes from the provider."""

    stages: dict[str, str] = Field(default_factory=dict)
    history: list[HistoryEntryState] = Field(default_factory=list)
    redo_history: list[HistoryEntryState] = Field(default_factory=list)
    hidden: list[str] = Field(default_factory=list)
    sort_descending: bool = True


def load_snapshot(path: str | Path) -> ReviewSnapshot | None:
    state_file = Path(path)
    if not state_file.exists():
        return None
    try:
        return ReviewSnapshot.model_validate_json(state_file.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as exc:
        logger.warning("ignoring unreadable review state at %s: %s", state_file, exc)
        return None


def save_snapshot(path: str | Path, snapshot: ReviewSnapshot) -> None:
    state_file = Path(path)
    state_file.parent.mkdir(parents=True, exist_ok=True)
    tmp_file = state_file.with_suffix(state_file.suffix + ".tmp")
    tmp_file.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
    tmp_file.replace(state_file)
