"""In-memory :class:`~day_brief.storage.base.EventStore` implementation.

Mirrors the SQLite store's semantics (including possible duplicate
day-index rows) so pipeline tests exercise the same code paths.  Stored
models are copied on the way in and out so callers never share state
with the store.
"""

from __future__ import annotations

import itertools
import uuid
from collections.abc import Callable, Collection, Iterable
from datetime import UTC, date, datetime

from day_brief.exceptions import DuplicateIndexError
from day_brief.models.events import (
    CanonicalEvent,
    ContactRecord,
    DayIndex,
    Override,
    SourceSystem,
)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class InMemoryStore:
    """Process-local store backed by dicts.

    Args:
        clock: Returns "now"; override in tests for deterministic
            ``created_at`` ordering.
    """

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock
        self.events: dict[str, CanonicalEvent] = {}
        self.index_rows: dict[int, DayIndex] = {}
        self.overrides: dict[str, Override] = {}
        self.contacts: dict[str, ContactRecord] = {}
        self.lookups: list[tuple[str, str, bool]] = []
        self.writes = 0
        self._row_ids = itertools.count(1)

    # -- canonical events ---------------------------------------------------

    async def find_event(
        self, source_id: str, source_system: SourceSystem
    ) -> CanonicalEvent | None:
        for event in self.events.values():
            if event.source_id == source_id and event.source_system == source_system:
                return event.model_copy(deep=True)
        return None

    async def insert_event(self, event: CanonicalEvent) -> str:
        event_id = uuid.uuid4().hex
        self.events[event_id] = event.model_copy(update={"id": event_id}, deep=True)
        self.writes += 1
        return event_id

    async def update_event(self, event_id: str, event: CanonicalEvent) -> None:
        if event_id not in self.events:
            raise KeyError(event_id)
        self.events[event_id] = event.model_copy(update={"id": event_id}, deep=True)
        self.writes += 1

    async def get_events(self, event_ids: Collection[str]) -> list[CanonicalEvent]:
        return [
            self.events[event_id].model_copy(deep=True)
            for event_id in event_ids
            if event_id in self.events
        ]

    # -- day index ----------------------------------------------------------

    async def get_day_index(self, day: date) -> DayIndex | None:
        rows = await self.list_day_index_rows(day)
        if len(rows) > 1:
            raise DuplicateIndexError(day, len(rows))
        return rows[0] if rows else None

    async def list_day_index_rows(self, day: date) -> list[DayIndex]:
        rows = [row.model_copy() for row in self.index_rows.values() if row.date == day]
        return sorted(
            rows,
            key=lambda row: (row.created_at or datetime.min.replace(tzinfo=UTC), row.row_id or 0),
            reverse=True,
        )

    async def delete_day_index_rows(self, row_ids: Iterable[int]) -> None:
        for row_id in row_ids:
            self.index_rows.pop(row_id, None)
            self.writes += 1

    async def merge_day_index(self, day: date, event_ids: Collection[str]) -> DayIndex:
        # No await between reading and writing the rows.
        now = self._clock()
        existing = [row for row in self.index_rows.values() if row.date == day]
        if not existing:
            return self.add_day_index_row(day, event_ids, created_at=now)
        merged = frozenset(event_ids).union(*(row.event_ids for row in existing))
        for row in existing:
            self.index_rows[row.row_id] = row.model_copy(  # type: ignore[index]
                update={"event_ids": merged, "last_merged_at": now}
            )
        self.writes += 1
        newest = max(existing, key=lambda row: (row.created_at, row.row_id or 0))
        return self.index_rows[newest.row_id].model_copy()  # type: ignore[index]

    def add_day_index_row(
        self,
        day: date,
        event_ids: Collection[str],
        created_at: datetime | None = None,
    ) -> DayIndex:
        """Insert a new day-index row unconditionally (no uniqueness check)."""
        row_id = next(self._row_ids)
        created = created_at or self._clock()
        row = DayIndex(
            row_id=row_id,
            date=day,
            event_ids=frozenset(event_ids),
            created_at=created,
            last_merged_at=created,
        )
        self.index_rows[row_id] = row
        self.writes += 1
        return row.model_copy()

    # -- overrides ------------------------------------------------------------

    async def get_overrides(self, event_ids: Collection[str]) -> list[Override]:
        return [
            self.overrides[event_id].model_copy()
            for event_id in event_ids
            if event_id in self.overrides
        ]

    async def put_override(self, override: Override) -> None:
        self.overrides[override.event_id] = override.model_copy(
            update={"updated_at": self._clock()}
        )

    # -- attendee lookup cache --------------------------------------------------

    async def get_contact(self, email: str) -> ContactRecord | None:
        record = self.contacts.get(email.lower())
        return record.model_copy() if record else None

    async def save_contact(self, record: ContactRecord) -> None:
        self.contacts[record.email.lower()] = record.model_copy(
            update={"email": record.email.lower()}
        )

    async def lookup_usage(self, month: str) -> int:
        return sum(1 for _, lookup_month, _ in self.lookups if lookup_month == month)

    async def record_lookup(self, email: str, month: str, success: bool) -> None:
        self.lookups.append((email.lower(), month, success))
