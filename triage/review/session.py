from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Literal

from triage.core.config import Settings, get_settings
from triage.review import navigation
from triage.review.machine import HistoryEntry, Notice, ReviewStateMachine
from triage.review.persistence import HistoryEntryState, ReviewSnapshot, load_snapshot, save_snapshot
from triage.review.projection import Projection, project, sort_candidates
from triage.review.stages import INTERVIEW, REJECTION, REVIEW, normalize_stage
from triage.review.store import Candidate, CandidateStore, LoadResult
from triage.services.airtable import (
    AirtableClient,
    ProviderFetchError,
    ProviderWriteError,
    RecordsProvider,
)

logger = logging.getLogger(__name__)

LoadStatus = Literal["idle", "ready", "failed"]

STAGE_KEYS = {
    "p": REVIEW,
    "i": INTERVIEW,
    "r": REJECTION,
    "e": REJECTION,
}


class UnknownCandidateError(LookupError):
    """Raised when a command names a candidate the store does not hold."""


@dataclass(slots=True)
class SessionView:
    status: LoadStatus
    error: str | None
    load_more_failed: bool
    has_more: bool
    current_id: str | None
    descending: bool
    show_hidden: bool
    can_undo: bool
    can_redo: bool
    has_pending: bool
    projection: Projection
    notices: list[Notice] = field(default_factory=list)


class ReviewSession:
    """Command surface the presentation layer drives.

    Combines the candidate store, the review state machine and the current
    selection. Every mutating command persists the local review state when a
    state file is configured.
    """

    def __init__(
        self,
        store: CandidateStore,
        machine: ReviewStateMachine,
        *,
        notes_field: str = "Notes",
        state_path: str | Path | None = None,
    ) -> None:
        self.store = store
        self.machine = machine
        self.notes_field = notes_field
        self.state_path = Path(state_path) if state_path else None
        self.current_id: str | None = None
        self.descending = True
        self.show_hidden = False
        self.status: LoadStatus = "idle"
        self.error: str | None = None
        self.load_more_failed = False
        if self.state_path is not None:
            self._restore(self.state_path)

    @classmethod
    def from_settings(cls, settings: Settings, provider: RecordsProvider) -> ReviewSession:
        store = CandidateStore(provider, page_size=settings.page_size, initial_limit=settings.initial_load_limit)
        machine = ReviewStateMachine(
            provider,
            stage_field=settings.stage_field,
            flag_field=settings.flag_field,
            write_delay_seconds=settings.write_delay_seconds,
            auto_hide_rejected=settings.auto_hide_rejected,
        )
        return cls(store, machine, notes_field=settings.notes_field, state_path=settings.state_path)

    async def load(self) -> LoadResult:
        try:
            result = await self.store.load()
        except ProviderFetchError as exc:
            self.status = "failed"
            self.error = str(exc)
            logger.warning("initial candidate load failed: %s", exc)
            raise
        self.status = "ready"
        self.error = None
        self.load_more_failed = False
        self.machine.seed(result.appended)
        if self.current_id not in self.store:
            visible = self._visible_order()
            self.current_id = visible[0] if visible else None
        self._persist()
        return result

    async def load_more(self) -> LoadResult:
        try:
            result = await self.store.load_more()
        except ProviderFetchError as exc:
            self.load_more_failed = True
            logger.warning("loading more candidates failed: %s", exc)
            raise
        self.load_more_failed = False
        self.machine.seed(result.appended)
        return result

    def select(self, candidate_id: str) -> None:
        self._require(candidate_id)
        self.current_id = candidate_id

    def set_stage(self, candidate_id: str, stage: str) -> HistoryEntry | None:
        self._require(candidate_id)
        entry = self.machine.set_stage(candidate_id, stage)
        self._persist()
        return entry

    def hide(self, candidate_id: str) -> HistoryEntry | None:
        self._require(candidate_id)
        entry = self.machine.hide(candidate_id)
        self._persist()
        return entry

    async def toggle_flag(self, candidate_id: str) -> bool:
        self._require(candidate_id)
        return await self.machine.toggle_flag(candidate_id)

    async def save_notes(self, candidate_id: str, notes: str) -> bool:
        candidate = self._require(candidate_id)
        candidate.notes = notes
        try:
            await self.store.provider.update_record(candidate_id, {self.notes_field: notes})
        except ProviderWriteError as exc:
            self.machine.notify("error", f"Failed to save notes: {exc}", candidate_id)
            return False
        self.machine.notify("info", "Notes saved", candidate_id)
        return True

    def undo(self) -> HistoryEntry | None:
        entry = self.machine.undo()
        if entry is not None:
            self.current_id = entry.candidate_id
            self._persist()
        return entry

    def redo(self) -> HistoryEntry | None:
        entry = self.machine.redo()
        if entry is not None:
            self.current_id = entry.candidate_id
            self._persist()
        return entry

    def next_untriaged(self) -> str | None:
        target = navigation.next_untriaged(
            self._order(),
            set(self._visible_order()),
            self.machine.get_stage,
            self.current_id,
        )
        if target is not None:
            self.current_id = target
        return target

    def adjacent(self, direction: int) -> str | None:
        target = navigation.adjacent(self._visible_order(), self.current_id, direction)
        if target is not None:
            self.current_id = target
        return target

    async def move_flag_if_needed(self) -> bool:
        current_id = self.current_id
        if current_id is None or not navigation.should_move_flag(
            self._order(),
            set(self._visible_order()),
            self.machine.get_stage,
            self.machine.flag_holder,
            current_id,
        ):
            return False
        return await self.machine.toggle_flag(current_id)

    async def triage(self, stage: str) -> str | None:
        """Apply ``stage`` to the current candidate, then advance to the next one up for review."""
        if self.current_id is None:
            return None
        if normalize_stage(stage) == REJECTION:
            self.hide(self.current_id)
        else:
            self.set_stage(self.current_id, stage)
        target = self.next_untriaged()
        await self.move_flag_if_needed()
        return target

    async def press(self, key: str) -> bool:
        key = key.lower()
        if key == "z":
            self.undo()
            return True
        if key == "y":
            self.redo()
            return True
        if key in ("j", "k"):
            self.adjacent(1 if key == "j" else -1)
            return True
        if key == "n":
            self.next_untriaged()
            return True
        if self.current_id is None:
            return False
        if key in STAGE_KEYS:
            await self.triage(STAGE_KEYS[key])
            return True
        if key == "f":
            await self.toggle_flag(self.current_id)
            return True
        return False

    def set_sort(self, descending: bool) -> None:
        self.descending = descending
        self._persist()

    def set_show_hidden(self, show_hidden: bool) -> None:
        self.show_hidden = show_hidden

    def projection(self) -> Projection:
        return project(
            self.store,
            self.machine,
            descending=self.descending,
            show_hidden=self.show_hidden,
            active_id=self.current_id,
            countdowns=self.machine.scheduler.countdowns(),
        )

    def view(self) -> SessionView:
        return SessionView(
            status=self.status,
            error=self.error,
            load_more_failed=self.load_more_failed,
            has_more=self.store.has_more,
            current_id=self.current_id,
            descending=self.descending,
            show_hidden=self.show_hidden,
            can_undo=self.machine.can_undo,
            can_redo=self.machine.can_redo,
            has_pending=self.machine.scheduler.has_pending,
            projection=self.projection(),
            notices=list(self.machine.notices),
        )

    async def aclose(self) -> None:
        await self.machine.scheduler.aclose()

    def snapshot(self) -> ReviewSnapshot:
        state = self.machine.export_state()
        return ReviewSnapshot(
            stages=state["stages"],
            history=[HistoryEntryState.model_validate(entry, from_attributes=True) for entry in state["history"]],
            redo_history=[
                HistoryEntryState.model_validate(entry, from_attributes=True) for entry in state["redo_history"]
            ],
            hidden=state["hidden"],
            sort_descending=self.descending,
        )

    def _restore(self, state_path: Path) -> None:
        snapshot = load_snapshot(state_path)
        if snapshot is None:
            return
        self.machine.import_state(
            stages=snapshot.stages,
            history=[HistoryEntry(**entry.model_dump()) for entry in snapshot.history],
            redo_history=[HistoryEntry(**entry.model_dump()) for entry in snapshot.redo_history],
            hidden=snapshot.hidden,
        )
        self.descending = snapshot.sort_descending
        logger.info(
            "restored review state: %s stages, %s history entries, %s hidden",
            len(snapshot.stages),
            len(snapshot.history),
            len(snapshot.hidden),
        )

    def _persist(self) -> None:
        if self.state_path is None:
            return
        try:
            save_snapshot(self.state_path, self.snapshot())
        except OSError:
            logger.exception("failed to persist review state to %s", self.state_path)

    def _require(self, candidate_id: str) -> Candidate:
        candidate = self.store.get(candidate_id)
        if candidate is None:
            raise UnknownCandidateError(f"candidate not found: {candidate_id}")
        return candidate

    def _order(self) -> list[str]:
        return [candidate.id for candidate in sort_candidates(self.store, descending=self.descending)]

    def _visible_order(self) -> list[str]:
        return [
            candidate_id
            for candidate_id in self._order()
            if self.show_hidden or not self.machine.is_hidden(candidate_id)
        ]


@lru_cache
def get_review_session() -> ReviewSession:
    settings = get_settings()
    return ReviewSession.from_settings(settings, AirtableClient.from_settings(settings))
