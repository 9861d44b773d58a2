"""Scheduled, single-flight reconciliation.

Cron and manual triggers go through the same :meth:`trigger` path.  At
most one pass runs at a time: a trigger that arrives while a pass is in
flight returns ``status="skipped"`` immediately without touching storage.

The gate is process-local.  Two processes pointed at the same store are
not excluded from each other; the writer's union-only index merge keeps
that case from losing references.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from croniter import croniter

from day_brief.models.results import DateOutcome, ReconcileResult

logger = logging.getLogger(__name__)

DEFAULT_CRON = "0 6,12,18 * * *"


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class PassRunner(Protocol):
    async def run_pass(self) -> list[DateOutcome]: ...


class SingleFlightGate:
    """Non-queueing mutual exclusion for reconciliation passes."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextlib.asynccontextmanager
    async def try_acquire(self) -> AsyncIterator[bool]:
        """Yield ``True`` if the gate was acquired, ``False`` if it is held.

        Never waits for the holder.  The gate is released on every exit
        path, including exceptions and cancellation.
        """
        if self._lock.locked():
            yield False
            return
        await self._lock.acquire()
        try:
            yield True
        finally:
            self._lock.release()


class ReconciliationScheduler:
    """Fires reconciliation passes on a cron schedule or on demand.

    Args:
        reconciler: Runs one pass over the target dates.
        cron: Cron expression evaluated in *timezone*.
        timezone: Reference timezone for the schedule.
        clock: Returns "now"; override in tests.
    """

    def __init__(
        self,
        reconciler: PassRunner,
        cron: str = DEFAULT_CRON,
        timezone: ZoneInfo = ZoneInfo("America/New_York"),
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if not croniter.is_valid(cron):
            raise ValueError(f"Invalid cron expression: {cron!r}")
        self._reconciler = reconciler
        self._cron = cron
        self._tz = timezone
        self._clock = clock
        self.gate = SingleFlightGate()

    async def trigger(self, source: str = "manual") -> ReconcileResult:
        """Run one reconciliation pass unless one is already running.

        Never raises: failures are reported as ``status="failed"``.
        """
        async with self.gate.try_acquire() as acquired:
            if not acquired:
                logger.warning("Reconciliation already in progress, skipping %s trigger", source)
                return ReconcileResult.skipped()

            logger.info("Reconciliation started (%s)", source)
            started = time.monotonic()
            try:
                outcomes = await self._reconciler.run_pass()
            except Exception as exc:
                logger.exception("Reconciliation pass failed")
                return ReconcileResult(
                    status="failed",
                    error=str(exc),
                    duration_seconds=time.monotonic() - started,
                )

            errors = [f"{o.day.isoformat()}: {o.error}" for o in outcomes if o.error]
            result = ReconcileResult(
                status="failed" if errors else "success",
                dates=outcomes,
                error="; ".join(errors) or None,
                duration_seconds=time.monotonic() - started,
            )
            logger.info(
                "Reconciliation %s: %d event(s) processed across %d date(s) in %.1fs",
                result.status,
                result.processed,
                len(outcomes),
                result.duration_seconds,
            )
            return result

    def next_run(self, now: datetime | None = None) -> datetime:
        """The next cron fire time after *now*, in the reference timezone."""
        anchor = (now or self._clock()).astimezone(self._tz)
        return croniter(self._cron, anchor).get_next(datetime)

    async def serve(self, stop_event: asyncio.Event | None = None) -> None:
        """Trigger passes on schedule until *stop_event* is set."""
        stop = stop_event or asyncio.Event()
        logger.info("Scheduler started (%s, %s)", self._cron, self._tz.key)
        while not stop.is_set():
            now = self._clock()
            fire_at = self.next_run(now)
            delay = max((fire_at - now).total_seconds(), 0.0)
            logger.info("Next reconciliation at %s", fire_at.isoformat())
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay)
            except TimeoutError:
                await self.trigger("schedule")
        logger.info("Scheduler stopped")
