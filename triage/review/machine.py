from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Literal, Protocol

from triage.review.scheduler import DeferredWriteScheduler
from triage.review.stages import REJECTION, REVIEW, is_rejection, normalize_stage
from triage.review.store import Candidate
from triage.services.airtable import ProviderWriteError

logger = logging.getLogger(__name__)

NoticeLevel = Literal["info", "error"]


class RecordWriter(Protocol):
    async def update_record(self, record_id: str, fields: dict[str, Any]) -> dict[str, Any]: ...


@dataclass(slots=True)
class HistoryEntry:
    candidate_id: str
    old_stage: str
    new_stage: str
    timestamp: float = field(default_factory=time.time)
    hidden_delta: bool = False


@dataclass(slots=True)
class Notice:
    level: NoticeLevel
    message: str
    candidate_id: str | None = None
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ReviewStateMachine:
    """Local review state for one reviewer session.

    Owns the stage per candidate, the linear undo/redo timeline, the hidden
    set and the single flag holder. Stage changes reach the provider through
    the deferred write scheduler; the local stage stays authoritative when a
    write fails. The flag is the exception: a failed flag write reverts the
    local holder.
    """

    def __init__(
        self,
        writer: RecordWriter,
        *,
        stage_field: str = "Stage",
        flag_field: str = "Flag",
        write_delay_seconds: float = 5.0,
        auto_hide_rejected: bool = True,
        max_notices: int = 50,
    ) -> None:
        self.writer = writer
        self.stage_field = stage_field
        self.flag_field = flag_field
        self.auto_hide_rejected = auto_hide_rejected
        self.history: list[HistoryEntry] = []
        self.redo_history: list[HistoryEntry] = []
        self.hidden: set[str] = set()
        self.notices: deque[Notice] = deque(maxlen=max_notices)
        self._stages: dict[str, str] = {}
        # Last stage known to be on the provider; None once a write to it has failed.
        self._remote_stages: dict[str, str | None] = {}
        self._flag_holder: str | None = None
        self._flag_writes: dict[str, asyncio.Task[dict[str, Any]]] = {}
        self.scheduler = DeferredWriteScheduler(
            self._write_stage,
            delay_seconds=write_delay_seconds,
            on_dispatch=self._record_dispatch,
            on_failure=self._record_write_failure,
        )

    @property
    def flag_holder(self) -> str | None:
        return self._flag_holder

    @property
    def can_undo(self) -> bool:
        return bool(self.history)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_history)

    def get_stage(self, candidate_id: str) -> str:
        return self._stages.get(candidate_id, REVIEW)

    def is_hidden(self, candidate_id: str) -> bool:
        return candidate_id in self.hidden

    def remote_stage(self, candidate_id: str) -> str | None:
        return self._remote_stages.get(candidate_id, REVIEW)

    def seed(self, candidates: Iterable[Candidate]) -> None:
        """Adopt provider state for newly fetched candidates without history or writes."""
        for candidate in candidates:
            remote = normalize_stage(candidate.remote_stage)
            self._remote_stages[candidate.id] = remote
            if candidate.id not in self._stages:
                self._stages[candidate.id] = remote
                if self.auto_hide_rejected and remote == REJECTION:
                    self.hidden.add(candidate.id)

            if not candidate.flag:
                continue
            if self._flag_holder is None:
                self._flag_holder = candidate.id
            elif self._flag_holder != candidate.id:
                logger.warning(
                    "provider has more than one flagged record; keeping id=%s, ignoring id=%s",
                    self._flag_holder,
                    candidate.id,
                )

    def set_stage(
        self,
        candidate_id: str,
        new_stage: str,
        *,
        record_history: bool = True,
        sync: bool = True,
    ) -> HistoryEntry | None:
        if sync:
            self.scheduler.bind_loop()
        stage = normalize_stage(new_stage)
        old_stage = self.get_stage(candidate_id)
        unhides = candidate_id in self.hidden and not is_rejection(stage)
        entry: HistoryEntry | None = None
        if record_history:
            if stage != old_stage:
                entry = HistoryEntry(
                    candidate_id=candidate_id,
                    old_stage=old_stage,
                    new_stage=stage,
                    hidden_delta=unhides,
                )
                self.history.append(entry)
            self.redo_history.clear()

        self._stages[candidate_id] = stage
        if unhides:
            self.unhide(candidate_id)
        if sync and stage != old_stage:
            self.scheduler.schedule(candidate_id, stage)
        return entry

    def hide(self, candidate_id: str) -> HistoryEntry | None:
        old_stage = self.get_stage(candidate_id)
        was_hidden = candidate_id in self.hidden
        if was_hidden and old_stage == REJECTION:
            return None

        self.scheduler.bind_loop()
        entry = HistoryEntry(
            candidate_id=candidate_id,
            old_stage=old_stage,
            new_stage=REJECTION,
            hidden_delta=not was_hidden,
        )
        self.history.append(entry)
        self.redo_history.clear()
        self._stages[candidate_id] = REJECTION
        self.hidden.add(candidate_id)
        if old_stage != REJECTION:
            self.scheduler.schedule(candidate_id, REJECTION)
        return entry

    def unhide(self, candidate_id: str) -> None:
        self.hidden.discard(candidate_id)

    def undo(self) -> HistoryEntry | None:
        if not self.history:
            return None
        self.scheduler.bind_loop()
        entry = self.history.pop()
        self.redo_history.append(entry)
        self._stages[entry.candidate_id] = entry.old_stage
        if entry.hidden_delta:
            # The change flipped visibility; flip it back.
            self._set_hidden(entry.candidate_id, not is_rejection(entry.new_stage))
        elif not is_rejection(entry.old_stage):
            self.unhide(entry.candidate_id)

        cancelled = self.scheduler.cancel(entry.candidate_id)
        if self.remote_stage(entry.candidate_id) != entry.old_stage:
            # The forward change already reached the provider; put the old value back.
            self.scheduler.write_now(entry.candidate_id, entry.old_stage)
        logger.info(
            "undo id=%s %s -> %s (pending_cancelled=%s)",
            entry.candidate_id,
            entry.new_stage,
            entry.old_stage,
            cancelled,
        )
        return entry

    def redo(self) -> HistoryEntry | None:
        if not self.redo_history:
            return None
        self.scheduler.bind_loop()
        entry = self.redo_history.pop()
        self.history.append(entry)
        self._stages[entry.candidate_id] = entry.new_stage
        if entry.hidden_delta:
            self._set_hidden(entry.candidate_id, is_rejection(entry.new_stage))
        elif not is_rejection(entry.new_stage):
            self.unhide(entry.candidate_id)

        if self.remote_stage(entry.candidate_id) != entry.new_stage:
            self.scheduler.schedule(entry.candidate_id, entry.new_stage)
        else:
            self.scheduler.cancel(entry.candidate_id)
        logger.info("redo id=%s %s -> %s", entry.candidate_id, entry.old_stage, entry.new_stage)
        return entry

    async def toggle_flag(self, candidate_id: str) -> bool:
        previous = self._flag_holder
        target = None if previous == candidate_id else candidate_id
        self._flag_holder = target

        writes = []
        if previous is not None:
            writes.append(self._queue_flag_write(previous, False))
        if target is not None:
            writes.append(self._queue_flag_write(target, True))
        results = await asyncio.gather(*writes, return_exceptions=True)

        failures = [result for result in results if isinstance(result, BaseException)]
        if not failures:
            logger.info("flag moved %s -> %s", previous, target)
            return True

        if self._flag_holder == target:
            self._flag_holder = previous
        for failure in failures:
            if not isinstance(failure, ProviderWriteError):
                raise failure
        self.notify("error", f"Flag update failed: {failures[0]}", candidate_id)
        return False

    def notify(self, level: NoticeLevel, message: str, candidate_id: str | None = None) -> Notice:
        notice = Notice(level=level, message=message, candidate_id=candidate_id)
        self.notices.append(notice)
        if level == "error":
            logger.warning("%s (id=%s)", message, candidate_id)
        else:
            logger.info("%s (id=%s)", message, candidate_id)
        return notice

    def export_state(self) -> dict[str, Any]:
        return {
            "stages": dict(self._stages),
            "history": list(self.history),
            "redo_history": list(self.redo_history),
            "hidden": sorted(self.hidden),
        }

    def import_state(
        self,
        *,
        stages: dict[str, str],
        history: list[HistoryEntry],
        redo_history: list[HistoryEntry],
        hidden: Iterable[str],
    ) -> None:
        self._stages = {candidate_id: normalize_stage(stage) for candidate_id, stage in stages.items()}
        self.history = list(history)
        self.redo_history = list(redo_history)
        self.hidden = {candidate_id for candidate_id in hidden if is_rejection(self.get_stage(candidate_id))}

    def _set_hidden(self, candidate_id: str, hidden: bool) -> None:
        if hidden:
            self.hidden.add(candidate_id)
        else:
            self.unhide(candidate_id)

    def _queue_flag_write(self, record_id: str, value: bool) -> asyncio.Task[dict[str, Any]]:
        # Flag writes for one record reach the provider in the order they were made.
        previous = self._flag_writes.get(record_id)
        task = asyncio.get_running_loop().create_task(self._write_flag(record_id, value, previous))
        self._flag_writes[record_id] = task
        task.add_done_callback(lambda done: self._forget_flag_write(record_id, done))
        return task

    async def _write_flag(
        self,
        record_id: str,
        value: bool,
        previous: asyncio.Task[dict[str, Any]] | None,
    ) -> dict[str, Any]:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        return await self.writer.update_record(record_id, {self.flag_field: value})

    def _forget_flag_write(self, record_id: str, task: asyncio.Task[dict[str, Any]]) -> None:
        if self._flag_writes.get(record_id) is task:
            del self._flag_writes[record_id]

    async def _write_stage(self, candidate_id: str, stage: str) -> None:
        await self.writer.update_record(candidate_id, {self.stage_field: stage})

    def _record_dispatch(self, candidate_id: str, stage: str) -> None:
        self._remote_stages[candidate_id] = stage

    def _record_write_failure(self, candidate_id: str, stage: str, exc: ProviderWriteError) -> None:
        if self._remote_stages.get(candidate_id) == stage:
            # The next undo or redo of this candidate rewrites the stage.
            self._remote_stages[candidate_id] = None
        self.notify("error", f"Failed to save stage {stage!r}: {exc}", candidate_id)
