"""Display-ready shapes returned by the consistency reader."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from day_brief.models.events import Attendee


class EventTime(BaseModel):
    """A start or end value as the display layer expects it.

    Timed events carry ``date_time`` (ISO 8601 instant) plus ``time_zone``;
    all-day events carry only ``date``.
    """

    date_time: str | None = None
    time_zone: str | None = None
    date: str | None = None


class EventView(BaseModel):
    """One reconciled event, ready for display."""

    id: str
    title: str
    start: EventTime
    end: EventTime
    is_all_day: bool = False
    location: str = ""
    description: str = ""
    attendees: list[Attendee] = Field(default_factory=list)
    project_ref: str | None = None
    context: str | None = None
    summary_text: str | None = None
    source_category: str
    has_override: bool = False


class DaySchedule(BaseModel):
    """The reconciled events for one date, sorted by start."""

    date: date
    events: list[EventView] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.events


class SourceTotals(BaseModel):
    """Per-source event counts across a schedule range."""

    google: int = 0
    outlook: int = 0
    total: int = 0

    @classmethod
    def from_schedules(cls, schedules: list[DaySchedule]) -> SourceTotals:
        events = [event for schedule in schedules for event in schedule.events]
        outlook = sum(1 for event in events if event.source_category == "Outlook")
        return cls(google=len(events) - outlook, outlook=outlook, total=len(events))
