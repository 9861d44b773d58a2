"""Custom exceptions for the day-brief reconciliation pipeline.

Exception hierarchy::

    DayBriefError
    +-- StorageError
    |   +-- DuplicateIndexError    (more than one day-index row for a date)
    +-- SourceFetchError           (one calendar source failed)
    +-- EnrichmentError            (enrichment oracle unusable)
        +-- MalformedResponseError (oracle output could not be parsed)

Only :class:`DuplicateIndexError` is ever repaired in place (by the
reader).  Everything else is counted, logged and degraded around by the
stage that catches it.
"""

from __future__ import annotations

from datetime import date


class DayBriefError(Exception):
    """Base class for all day-brief errors."""


class StorageError(DayBriefError):
    """Raised when the durable store rejects a read or write."""


class DuplicateIndexError(StorageError):
    """Raised when a date has more than one day-index row.

    Attributes:
        day: The calendar date whose uniqueness was violated.
        row_count: How many rows were found.
    """

    def __init__(self, day: date, row_count: int) -> None:
        super().__init__(f"{row_count} day-index rows found for {day.isoformat()}")
        self.day = day
        self.row_count = row_count


class SourceFetchError(DayBriefError):
    """Raised when a calendar source cannot return events for a date.

    Attributes:
        source: Name of the failing source.
    """

    def __init__(self, message: str, source: str = "") -> None:
        super().__init__(message)
        self.source = source


class EnrichmentError(DayBriefError):
    """Raised when an enrichment oracle cannot produce an answer.

    The enrichment stage catches this and persists the event without
    enrichment.
    """


class MalformedResponseError(EnrichmentError):
    """Raised when an oracle response cannot be parsed or validated.

    Attributes:
        raw_response: The raw output that failed to parse.
    """

    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response
