"""Pydantic models for calendar reconciliation.

Defines the data types that flow through the pipeline:

- :class:`GoogleRawEvent` / :class:`OutlookRawEvent` -- source-shaped
  events exactly as the calendar sources return them, combined into the
  :data:`RawSourceEvent` tagged union.  Never persisted.
- :class:`CanonicalEvent` -- the single reconciled representation of a
  calendar occurrence, independent of its source.
- :class:`DayIndex` -- the set of canonical-event references for one date.
- :class:`Override` -- a manual correction applied at read time.
- :class:`Enrichment` / :class:`ContactRecord` -- answers from the
  enrichment oracles.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

NO_TITLE_SENTINEL = "No Title"
"""Placeholder title some calendar clients emit for untitled events."""


class SourceSystem(str, Enum):
    """Calendar systems events can originate from."""

    GOOGLE = "google"
    OUTLOOK = "outlook"

    @property
    def category(self) -> str:
        """Display tag for the source (``"Google"`` or ``"Outlook"``)."""
        return self.value.capitalize()


def is_blank_title(title: str | None) -> bool:
    """Whether *title* is empty, whitespace-only or the "No Title" sentinel."""
    if title is None:
        return True
    stripped = title.strip()
    return not stripped or stripped == NO_TITLE_SENTINEL


# ---------------------------------------------------------------------------
# Raw source events (tagged union)
# ---------------------------------------------------------------------------


class GoogleTime(BaseModel):
    """A Google Calendar ``start``/``end`` object."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    date_time: str | None = Field(default=None, alias="dateTime")
    date: str | None = None
    time_zone: str | None = Field(default=None, alias="timeZone")


class GoogleAttendee(BaseModel):
    """A Google Calendar attendee entry."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    email: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    response_status: str | None = Field(default=None, alias="responseStatus")


class GoogleRawEvent(BaseModel):
    """An event resource returned by the Google Calendar API."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source: Literal["google"] = "google"
    id: str | None = None
    summary: str | None = None
    start: GoogleTime | None = None
    end: GoogleTime | None = None
    location: str | None = None
    description: str | None = None
    attendees: list[GoogleAttendee] = Field(default_factory=list)
    ical_uid: str | None = Field(default=None, alias="iCalUID")
    status: str | None = None


class OutlookRawEvent(BaseModel):
    """An event from the Outlook calendar export.

    Outlook encodes times as strings (``"2025-10-05T12:00:00.0000000"``)
    with a separate ``timeZone`` and an explicit ``isAllDay`` flag, and
    attendees as semicolon-separated email strings.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source: Literal["outlook"] = "outlook"
    id: str | None = None
    subject: str | None = None
    start: str | None = None
    end: str | None = None
    start_with_time_zone: str | None = Field(default=None, alias="startWithTimeZone")
    end_with_time_zone: str | None = Field(default=None, alias="endWithTimeZone")
    time_zone: str | None = Field(default=None, alias="timeZone")
    is_all_day: bool = Field(default=False, alias="isAllDay")
    location: str | None = None
    body: str | None = None
    required_attendees: str | None = Field(default=None, alias="requiredAttendees")
    optional_attendees: str | None = Field(default=None, alias="optionalAttendees")
    ical_uid: str | None = Field(default=None, alias="iCalUId")


RawSourceEvent = Annotated[
    GoogleRawEvent | OutlookRawEvent,
    Field(discriminator="source"),
]
"""One raw event from either source, discriminated on ``source``."""


# ---------------------------------------------------------------------------
# Canonical event
# ---------------------------------------------------------------------------


class Attendee(BaseModel):
    """A meeting attendee in canonical form.

    The ``company`` .. ``linkedin_url`` fields are only populated once the
    attendee enricher has found the contact.
    """

    email: str
    name: str | None = None
    response_state: str | None = None
    company: str | None = None
    job_title: str | None = None
    seniority: str | None = None
    linkedin_url: str | None = None


class CanonicalEvent(BaseModel):
    """The reconciled representation of one calendar occurrence.

    Attributes:
        id: Storage key, ``None`` until the writer has persisted it.
        source_id: Event identifier within its source system.
        source_system: Where the event came from.
        ical_uid: Stable occurrence identifier shared across systems,
            when the source provides one.
        title: Non-empty, never the "No Title" sentinel.
        start: Aware UTC start instant.
        end: Aware UTC end instant (never before ``start``).
        is_all_day: All-day events start on UTC midnight.
        location: Free-text location (may be empty).
        description: Free-text description (may be empty).
        attendees: Canonical attendee list.
        project_ref: Linked project, if the classifier found one.
        category: ``"Work"`` or ``"Life"`` once categorized.
        summary_text: Generated summary, if any.
        last_written_at: When the writer last inserted/updated the row.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str | None = None
    source_id: str
    source_system: SourceSystem
    ical_uid: str | None = None
    title: str
    start: datetime
    end: datetime
    is_all_day: bool = False
    location: str = ""
    description: str = ""
    attendees: list[Attendee] = Field(default_factory=list)
    project_ref: str | None = None
    category: Literal["Work", "Life"] | None = None
    summary_text: str | None = None
    last_written_at: datetime | None = None

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        if is_blank_title(value):
            raise ValueError(f"title must be non-empty and not {NO_TITLE_SENTINEL!r}")
        return value.strip()

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("start/end must be timezone-aware")
        return value.astimezone(UTC)

    @model_validator(mode="after")
    def _check_span(self) -> CanonicalEvent:
        if self.end < self.start:
            raise ValueError(
                f"end ({self.end.isoformat()}) is before start ({self.start.isoformat()})"
            )
        if self.is_all_day and self.start.timetz() != time(0, tzinfo=UTC):
            raise ValueError("all-day events must start on UTC midnight")
        return self

    @property
    def source_category(self) -> str:
        """Display tag for the event's source."""
        return self.source_system.category


# ---------------------------------------------------------------------------
# Day index and overrides
# ---------------------------------------------------------------------------


class DayIndex(BaseModel):
    """The durable set of canonical-event references for one date.

    Attributes:
        row_id: Storage row identifier (``None`` before insert).
        date: Calendar date in the reference timezone.
        event_ids: Canonical event ids; only ever grown by the writer.
        created_at: When the row was first created.
        last_merged_at: When the writer last merged into the row.
    """

    row_id: int | None = None
    date: date
    event_ids: frozenset[str] = frozenset()
    created_at: datetime | None = None
    last_merged_at: datetime | None = None


class Override(BaseModel):
    """A manual correction for one canonical event, applied at read time.

    ``None`` fields leave the pipeline-derived value in place.
    """

    event_id: str
    title: str | None = None
    project_ref: str | None = None
    context: Literal["Work", "Life"] | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Enrichment answers
# ---------------------------------------------------------------------------


class Enrichment(BaseModel):
    """Project linkage and summary returned by the classification oracle."""

    project_ref: str | None = None
    category: Literal["Work", "Life"] | None = None
    summary_text: str | None = None


class ContactRecord(BaseModel):
    """A cached attendee lookup answer.

    ``status`` is ``"enriched"`` when the lookup found the person,
    ``"not_found"`` when it did not, and ``"error"`` when the lookup
    failed.  All three are cached so the address is never looked up again.
    """

    email: str
    name: str | None = None
    company: str | None = None
    job_title: str | None = None
    seniority: str | None = None
    linkedin_url: str | None = None
    status: Literal["enriched", "not_found", "error"] = "not_found"
    looked_up_at: datetime | None = None
