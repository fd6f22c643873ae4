from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable

from triage.core.telemetry import candidate_span
from triage.services.airtable import ProviderWriteError

logger = logging.getLogger(__name__)

StageWriter = Callable[[str, str], Awaitable[None]]
DispatchCallback = Callable[[str, str], None]
FailureCallback = Callable[[str, str, ProviderWriteError], None]


@dataclass(slots=True)
class PendingWrite:
    candidate_id: str
    target_stage: str
    fire_at: float
    handle: asyncio.TimerHandle


class DeferredWriteScheduler:
    """Per-candidate debounced stage writes.

    At most one write is pending per candidate; scheduling again cancels the
    previous timer and keeps only the latest target stage. Once a write has
    fired it can no longer be cancelled. Fired writes for the same candidate
    reach the writer one at a time, in dispatch order.
    """

    def __init__(
        self,
        writer: StageWriter,
        *,
        delay_seconds: float = 5.0,
        on_dispatch: DispatchCallback | None = None,
        on_failure: FailureCallback | None = None,
    ) -> None:
        self.writer = writer
        self.delay_seconds = delay_seconds
        self.on_dispatch = on_dispatch
        self.on_failure = on_failure
        self._pending: dict[str, PendingWrite] = {}
        self._in_flight: set[asyncio.Task[None]] = set()
        self._last_task: dict[str, asyncio.Task[None]] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def pending(self, candidate_id: str) -> PendingWrite | None:
        return self._pending.get(candidate_id)

    def schedule(self, candidate_id: str, stage: str) -> PendingWrite:
        self.cancel(candidate_id)
        loop = self.bind_loop()
        handle = loop.call_later(self.delay_seconds, self._fire, candidate_id)
        pending = PendingWrite(
            candidate_id=candidate_id,
            target_stage=stage,
            fire_at=loop.time() + self.delay_seconds,
            handle=handle,
        )
        self._pending[candidate_id] = pending
        logger.debug("scheduled stage write id=%s stage=%s in %.1fs", candidate_id, stage, self.delay_seconds)
        return pending

    def cancel(self, candidate_id: str) -> bool:
        pending = self._pending.pop(candidate_id, None)
        if pending is None:
            return False
        pending.handle.cancel()
        logger.debug("cancelled stage write id=%s stage=%s", candidate_id, pending.target_stage)
        return True

    def write_now(self, candidate_id: str, stage: str) -> None:
        self.cancel(candidate_id)
        self.bind_loop()
        self._dispatch(candidate_id, stage)

    def countdowns(self) -> dict[str, int]:
        if not self._pending or self._loop is None:
            return {}
        now = self._loop.time()
        countdowns: dict[str, int] = {}
        for candidate_id, pending in self._pending.items():
            remaining_ms = max(0.0, (pending.fire_at - now) * 1000.0)
            countdowns[candidate_id] = math.ceil(remaining_ms / 1000)
        return countdowns

    async def drain(self) -> None:
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def aclose(self) -> None:
        for candidate_id in list(self._pending):
            self.cancel(candidate_id)
        for task in list(self._in_flight):
            task.cancel()
        await asyncio.gather(*list(self._in_flight), return_exceptions=True)
        self._in_flight.clear()
        self._last_task.clear()

    def bind_loop(self) -> asyncio.AbstractEventLoop:
        """Attach to the running loop; raises ``RuntimeError`` when there is none."""
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            if self._pending:
                logger.warning("event loop changed; dropping %s pending writes", len(self._pending))
                self._pending.clear()
            self._last_task.clear()
            self._loop = loop
        return loop

    def _fire(self, candidate_id: str) -> None:
        pending = self._pending.pop(candidate_id, None)
        if pending is None:
            return
        self._dispatch(candidate_id, pending.target_stage)

    def _dispatch(self, candidate_id: str, stage: str) -> None:
        if self.on_dispatch is not None:
            self.on_dispatch(candidate_id, stage)
        previous = self._last_task.get(candidate_id)
        task = asyncio.get_running_loop().create_task(self._write(candidate_id, stage, previous))
        self._last_task[candidate_id] = task
        self._in_flight.add(task)
        task.add_done_callback(lambda done: self._finish(candidate_id, done))

    def _finish(self, candidate_id: str, task: asyncio.Task[None]) -> None:
        self._in_flight.discard(task)
        if self._last_task.get(candidate_id) is task:
            del self._last_task[candidate_id]

    async def _write(self, candidate_id: str, stage: str, previous: asyncio.Task[None] | None) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})

        with candidate_span("review.deferred_write", candidate_id, stage=stage):
            try:
                await self.writer(candidate_id, stage)
            except ProviderWriteError as exc:
                logger.warning("stage write failed id=%s stage=%s: %s", candidate_id, stage, exc)
                if self.on_failure is not None:
                    self.on_failure(candidate_id, stage, exc)
                return
            logger.info("synced stage id=%s stage=%s", candidate_id, stage)
