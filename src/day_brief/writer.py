"""Persistence writer: idempotent event upserts plus a gated day-index merge.

For one date's deduplicated, enriched events:

1. Each event is looked up by ``(source_id, source_system)`` and inserted,
   updated (title/start/end changed, or stored summary missing) or left
   alone.  A failure is counted; the event is left out of this run's
   index contribution and not retried until the next pass.
2. If the failure rate exceeds the threshold the day index is not
   touched at all, so a partially-failed run can never shrink a
   previously-good schedule.
3. Otherwise the written ids are unioned into the stored index.  The
   index only ever grows.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, date, datetime

from day_brief.models.events import CanonicalEvent
from day_brief.models.results import WriteResult
from day_brief.storage.base import EventStore

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 0.30


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def needs_update(stored: CanonicalEvent, event: CanonicalEvent) -> bool:
    """Whether *stored* must be rewritten with *event*."""
    return (
        stored.title != event.title
        or stored.start != event.start
        or stored.end != event.end
        or not stored.summary_text
    )


class PersistenceWriter:
    """Writes one date's events and merges them into the day index.

    Args:
        store: The durable store.
        failure_threshold: Highest tolerated fraction of failed upserts;
            anything above aborts the index merge.
        clock: Returns "now" for ``last_written_at``.
    """

    def __init__(
        self,
        store: EventStore,
        failure_threshold: float = DEFAULT_FAILURE_THRESHOLD,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._threshold = failure_threshold
        self._clock = clock

    async def write_date(self, day: date, events: Sequence[CanonicalEvent]) -> WriteResult:
        """Upsert *events* and merge their ids into *day*'s index.

        Never raises for per-event failures; an exception while merging
        the index propagates to the pipeline.
        """
        result = WriteResult()
        if not events:
            logger.info("%s: no events to write", day.isoformat())
            return result

        for event in events:
            await self._upsert(event, result)

        logger.info(
            "%s: %d created, %d updated, %d unchanged, %d failed",
            day.isoformat(),
            result.created,
            result.updated,
            result.unchanged,
            result.failed,
        )

        rate = result.failure_rate
        if rate > self._threshold:
            result.index_status = "aborted"
            logger.critical(
                "%s: %d/%d event writes failed (%.0f%% > %.0f%%); "
                "day index left unchanged",
                day.isoformat(),
                result.failed,
                result.total,
                rate * 100,
                self._threshold * 100,
            )
            return result
        if rate > 0:
            logger.warning(
                "%s: %d/%d event writes failed (%.0f%%); merging the rest",
                day.isoformat(),
                result.failed,
                result.total,
                rate * 100,
            )

        index = await self._store.merge_day_index(day, result.written_ids)
        result.index_status = "merged"
        result.index_size = len(index.event_ids)
        logger.info(
            "%s: day index merged (%d written, %d indexed)",
            day.isoformat(),
            len(result.written_ids),
            result.index_size,
        )
        return result

    async def _upsert(self, event: CanonicalEvent, result: WriteResult) -> None:
        try:
            stored = await self._store.find_event(event.source_id, event.source_system)
            if stored is None:
                event_id = await self._store.insert_event(
                    event.model_copy(update={"last_written_at": self._clock()})
                )
                result.created += 1
                logger.debug("Created '%s' (%s)", event.title, event_id)
            elif needs_update(stored, event):
                event_id = stored.id  # type: ignore[assignment]
                await self._store.update_event(
                    event_id,
                    event.model_copy(update={"id": event_id, "last_written_at": self._clock()}),
                )
                result.updated += 1
                logger.debug("Updated '%s' (%s)", event.title, event_id)
            else:
                event_id = stored.id  # type: ignore[assignment]
                result.unchanged += 1
        except Exception as exc:
            result.failed += 1
            result.failures.append({"event": event.title, "error": str(exc)})
            logger.error("Failed to save '%s': %s", event.title, exc)
            return
        result.written_ids.append(event_id)
