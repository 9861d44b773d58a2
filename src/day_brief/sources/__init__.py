"""Calendar sources that feed the reconciliation pipeline."""

from __future__ import annotations

from day_brief.sources.base import CalendarSource
from day_brief.sources.exceptions import (
    CalendarAPIError,
    CalendarAuthError,
    CalendarNotFoundError,
    CalendarRateLimitError,
)
from day_brief.sources.google import GoogleCalendarSource
from day_brief.sources.outlook import OutlookExportSource

__all__ = [
    "CalendarAPIError",
    "CalendarAuthError",
    "CalendarNotFoundError",
    "CalendarRateLimitError",
    "CalendarSource",
    "GoogleCalendarSource",
    "OutlookExportSource",
]
