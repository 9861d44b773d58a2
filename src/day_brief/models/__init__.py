"""Data models for day-brief."""

from __future__ import annotations

from day_brief.models.events import (
    NO_TITLE_SENTINEL,
    Attendee,
    CanonicalEvent,
    ContactRecord,
    DayIndex,
    Enrichment,
    GoogleRawEvent,
    OutlookRawEvent,
    Override,
    RawSourceEvent,
    SourceSystem,
)
from day_brief.models.results import DateOutcome, ReconcileResult, WriteResult
from day_brief.models.view import DaySchedule, EventTime, EventView, SourceTotals

__all__ = [
    "NO_TITLE_SENTINEL",
    "Attendee",
    "CanonicalEvent",
    "ContactRecord",
    "DateOutcome",
    "DayIndex",
    "DaySchedule",
    "Enrichment",
    "EventTime",
    "EventView",
    "GoogleRawEvent",
    "OutlookRawEvent",
    "Override",
    "RawSourceEvent",
    "ReconcileResult",
    "SourceSystem",
    "SourceTotals",
    "WriteResult",
]
