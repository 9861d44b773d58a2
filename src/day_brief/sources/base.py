"""The calendar-source contract consumed by the reconciliation pipeline."""

from __future__ import annotations

from datetime import date
from typing import Protocol

from day_brief.models.events import GoogleRawEvent, OutlookRawEvent


class CalendarSource(Protocol):
    """A calendar system that can list raw events for one date.

    ``fetch`` may raise anything; the pipeline isolates each source so a
    failure only empties that source's contribution.
    """

    name: str

    async def fetch(self, day: date) -> list[GoogleRawEvent | OutlookRawEvent]:
        """Return raw events that may occur on *day* (a superset is fine)."""
        ...
