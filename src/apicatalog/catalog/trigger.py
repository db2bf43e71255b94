"""
Periodic and on-demand refresh triggering.

Every entry point claims the same running flag before delegating to the
orchestrator, so at most one pass is active per process. A caller that
finds the flag taken gets an all-zero result back immediately.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Callable

import structlog

from apicatalog.catalog.refresh import RefreshOrchestrator, RefreshResult, RefreshScope
from apicatalog.domain.models import utcnow

logger = structlog.get_logger()

DEFAULT_INTERVAL_MS = 600_000


class RefreshTrigger:
    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        *,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._orchestrator = orchestrator
        self._interval_ms = interval_ms if interval_ms > 0 else DEFAULT_INTERVAL_MS
        self._enabled = enabled
        self._clock = clock
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._last_result: RefreshResult | None = None
        self._last_completed_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def last_result(self) -> RefreshResult | None:
        return self._last_result

    @property
    def last_completed_at(self) -> datetime | None:
        return self._last_completed_at

    async def trigger(self, scope: RefreshScope | None = None) -> RefreshResult:
        """Run a pass now unless one is already active. Errors propagate."""
        return await self._run(scope or RefreshScope.all(), source="manual")

    async def trigger_forced(self) -> RefreshResult:
        """Run a pass that ignores failure backoff."""
        return await self._run(RefreshScope.forced(), source="manual")

    async def _run(self, scope: RefreshScope, source: str) -> RefreshResult:
        # No await between the check and the claim, so the claim is atomic on the loop
        if self._running:
            logger.info("refresh_already_running", source=source)
            return RefreshResult()

        self._running = True
        try:
            result = await self._orchestrator.refresh(scope)
            self._last_result = result
            self._last_completed_at = utcnow()
            return result
        finally:
            self._running = False

    async def start(self) -> None:
        """Start the periodic loop; the first pass runs immediately."""
        if not self._enabled:
            logger.info("refresh_scheduler_disabled")
            return
        if self._task is not None and not self._task.done():
            return

        self._task = asyncio.create_task(self._scheduler_loop(), name="apicatalog-refresh")
        logger.info("refresh_scheduler_started", interval_ms=self._interval_ms)

    async def stop(self) -> None:
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("refresh_scheduler_stopped")

    async def _scheduler_loop(self) -> None:
        # Fixed rate: passes start every interval, a slow pass shortens the next wait
        while True:
            started = self._clock()
            try:
                await self._run(RefreshScope.all(), source="scheduled")
            except Exception as exc:
                logger.exception("scheduled_refresh_failed", error=str(exc))
            await asyncio.sleep(self._next_delay(started))

    def _next_delay(self, started: float) -> float:
        elapsed = self._clock() - started
        return max(self._interval_ms / 1000 - elapsed, 0.0)
