"""Keyed read/write interface to the durable store.

The writer, reader and attendee enricher only talk to storage through
:class:`EventStore`.  Implementations:

- :class:`~day_brief.storage.memory.InMemoryStore` -- process-local dicts,
  used by tests and dry runs.
- :class:`~day_brief.storage.sqlite.SqliteStore` -- the durable store.

Day-index rows are deliberately *not* unique per date at the storage
level: duplicate rows are a known anomaly that
:meth:`EventStore.get_day_index` surfaces as
:class:`~day_brief.exceptions.DuplicateIndexError` and the reader repairs.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from datetime import date
from typing import Protocol

from day_brief.models.events import (
    CanonicalEvent,
    ContactRecord,
    DayIndex,
    Override,
    SourceSystem,
)


class EventStore(Protocol):
    """Async keyed store for canonical events, day indexes and overrides."""

    # -- canonical events ---------------------------------------------------

    async def find_event(
        self, source_id: str, source_system: SourceSystem
    ) -> CanonicalEvent | None:
        """Return the stored event with this source identity, if any."""
        ...

    async def insert_event(self, event: CanonicalEvent) -> str:
        """Insert *event* and return its new canonical id."""
        ...

    async def update_event(self, event_id: str, event: CanonicalEvent) -> None:
        """Overwrite the stored fields of *event_id* with *event*."""
        ...

    async def get_events(self, event_ids: Collection[str]) -> list[CanonicalEvent]:
        """Return the events for *event_ids* (missing ids are skipped)."""
        ...

    # -- day index ----------------------------------------------------------

    async def get_day_index(self, day: date) -> DayIndex | None:
        """Return the single day-index row for *day*.

        Raises:
            DuplicateIndexError: If more than one row exists for *day*.
        """
        ...

    async def list_day_index_rows(self, day: date) -> list[DayIndex]:
        """Return every row for *day*, newest ``created_at`` first."""
        ...

    async def delete_day_index_rows(self, row_ids: Iterable[int]) -> None:
        """Delete day-index rows by row id."""
        ...

    async def merge_day_index(self, day: date, event_ids: Collection[str]) -> DayIndex:
        """Union *event_ids* into the index for *day* and return the newest row.

        The read of the current ids and the write of the union happen in
        one transaction, so concurrent merges never drop each other's ids.
        Every existing row for *day* receives the union; one row is inserted
        when none exists.
        """
        ...

    # -- overrides ------------------------------------------------------------

    async def get_overrides(self, event_ids: Collection[str]) -> list[Override]:
        """Return overrides for any of *event_ids*."""
        ...

    async def put_override(self, override: Override) -> None:
        """Create or replace the override for ``override.event_id``."""
        ...

    # -- attendee lookup cache --------------------------------------------------

    async def get_contact(self, email: str) -> ContactRecord | None:
        """Return the cached lookup answer for *email*, if any."""
        ...

    async def save_contact(self, record: ContactRecord) -> None:
        """Cache a lookup answer."""
        ...

    async def lookup_usage(self, month: str) -> int:
        """Return the number of lookups recorded for *month* (``YYYY-MM``)."""
        ...

    async def record_lookup(self, email: str, month: str, success: bool) -> None:
        """Record one lookup call against *month*'s budget."""
        ...
