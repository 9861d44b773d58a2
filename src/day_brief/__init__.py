"""day-brief: calendar reconciliation into one daily schedule.

Pulls events from Google Calendar and an Outlook export, normalizes and
deduplicates them, enriches them, persists them without ever shrinking a
stored day, and serves the result to a display layer.
"""

from __future__ import annotations

from day_brief.dedup import TokenSetTitleScorer, deduplicate_events, identity_key
from day_brief.exceptions import (
    DayBriefError,
    DuplicateIndexError,
    EnrichmentError,
    MalformedResponseError,
    SourceFetchError,
    StorageError,
)
from day_brief.models.events import (
    Attendee,
    CanonicalEvent,
    DayIndex,
    GoogleRawEvent,
    OutlookRawEvent,
    Override,
    RawSourceEvent,
    SourceSystem,
)
from day_brief.models.results import DateOutcome, ReconcileResult, WriteResult
from day_brief.models.view import DaySchedule, EventView
from day_brief.normalizer import filter_events_by_date, normalize_event, normalize_events
from day_brief.pipeline import Reconciler
from day_brief.reader import ConsistencyReader
from day_brief.scheduler import ReconciliationScheduler, SingleFlightGate
from day_brief.writer import PersistenceWriter

__version__ = "0.1.0"

__all__ = [
    "Attendee",
    "CanonicalEvent",
    "ConsistencyReader",
    "DateOutcome",
    "DayBriefError",
    "DayIndex",
    "DaySchedule",
    "DuplicateIndexError",
    "EnrichmentError",
    "EventView",
    "GoogleRawEvent",
    "MalformedResponseError",
    "OutlookRawEvent",
    "Override",
    "PersistenceWriter",
    "RawSourceEvent",
    "ReconcileResult",
    "Reconciler",
    "ReconciliationScheduler",
    "SingleFlightGate",
    "SourceFetchError",
    "SourceSystem",
    "StorageError",
    "TokenSetTitleScorer",
    "WriteResult",
    "deduplicate_events",
    "filter_events_by_date",
    "identity_key",
    "normalize_event",
    "normalize_events",
]
