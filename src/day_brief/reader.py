"""Consistency reader: serves stored schedules and repairs duplicate index rows.

Reads never recompute anything; they only reshape what the writer stored
and apply manual overrides on top.  When a date has more than one
day-index row, the newest (by ``created_at``) is kept, the rest are
deleted and the read is retried once.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, time, timedelta

from day_brief.exceptions import DuplicateIndexError
from day_brief.models.events import CanonicalEvent, DayIndex, Override
from day_brief.models.view import DaySchedule, EventTime, EventView
from day_brief.storage.base import EventStore

logger = logging.getLogger(__name__)

_UTC_MIDNIGHT = time(0, tzinfo=UTC)


def _iso_utc(value: datetime) -> str:
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def is_date_only(event: CanonicalEvent) -> bool:
    """Whether *event* is shown as a date-only span.

    True for all-day events, and for events whose start and end both sit
    on UTC midnight at least a day apart.
    """
    if event.is_all_day:
        return True
    return (
        event.start.timetz() == _UTC_MIDNIGHT
        and event.end.timetz() == _UTC_MIDNIGHT
        and event.end - event.start >= timedelta(days=1)
    )


def to_view(event: CanonicalEvent, override: Override | None = None) -> EventView:
    """Reshape a stored event for display and apply *override* last."""
    if is_date_only(event):
        start = EventTime(date=event.start.date().isoformat())
        end = EventTime(date=event.end.date().isoformat())
    else:
        start = EventTime(date_time=_iso_utc(event.start), time_zone="UTC")
        end = EventTime(date_time=_iso_utc(event.end), time_zone="UTC")

    view = EventView(
        id=event.id or "",
        title=event.title,
        start=start,
        end=end,
        is_all_day=is_date_only(event),
        location=event.location,
        description=event.description,
        attendees=event.attendees,
        project_ref=event.project_ref,
        context=event.category,
        summary_text=event.summary_text,
        source_category=event.source_category,
    )
    if override is None:
        return view

    changes: dict[str, object] = {}
    if override.title is not None:
        changes["title"] = override.title
    if override.project_ref is not None:
        changes["project_ref"] = override.project_ref
    if override.context is not None:
        changes["context"] = override.context
    if not changes:
        return view
    changes["has_override"] = True
    return view.model_copy(update=changes)


class ConsistencyReader:
    """Display-ready reads over the durable store.

    Args:
        store: The durable store.
    """

    def __init__(self, store: EventStore) -> None:
        self._store = store

    async def read_range(self, start: date, days: int = 2) -> list[DaySchedule]:
        """Read *days* consecutive dates starting at *start*."""
        return [await self.read_date(start + timedelta(days=offset)) for offset in range(days)]

    async def read_date(self, day: date) -> DaySchedule:
        """Read one date's schedule, sorted by start.

        A date with no index row, or whose duplicate rows could not be
        repaired, reads as an empty schedule.
        """
        index = await self._load_index(day)
        if index is None or not index.event_ids:
            return DaySchedule(date=day)

        events = await self._store.get_events(index.event_ids)
        missing = len(index.event_ids) - len(events)
        if missing:
            logger.warning("%s: %d indexed event(s) not found in storage", day.isoformat(), missing)
        events.sort(key=lambda event: event.start)

        ids = [event.id for event in events if event.id]
        overrides = {o.event_id: o for o in await self._store.get_overrides(ids)}
        views = [to_view(event, overrides.get(event.id or "")) for event in events]
        if overrides:
            logger.debug("%s: applied %d override(s)", day.isoformat(), len(overrides))
        return DaySchedule(date=day, events=views)

    async def _load_index(self, day: date) -> DayIndex | None:
        try:
            return await self._store.get_day_index(day)
        except DuplicateIndexError as exc:
            logger.warning("%s; keeping the newest and deleting the rest", exc)

        try:
            rows = await self._store.list_day_index_rows(day)
            stale = [row.row_id for row in rows[1:] if row.row_id is not None]
            await self._store.delete_day_index_rows(stale)
            logger.info("%s: removed %d duplicate index row(s)", day.isoformat(), len(stale))
            return await self._store.get_day_index(day)
        except Exception:
            logger.exception("%s: could not repair duplicate index rows", day.isoformat())
            return None
