"""Normalize raw source events into :class:`CanonicalEvent` records.

This is the only module that knows how Google and Outlook encode events.
Everything downstream works on :class:`~day_brief.models.events.CanonicalEvent`
and never branches on source type.

Normalization rules:

- **Rejection** -- events with an empty/blank title, the ``"No Title"``
  sentinel, or no start information are logged and dropped (``None``).
  They are never retried and never defaulted.
- **Timed events** -- timezone-qualified instants are converted to UTC.
  Naive Outlook strings are interpreted in the event's ``timeZone``
  (UTC when absent); ``startWithTimeZone`` wins when present.
- **All-day events** -- Google ``date`` values and Outlook ``isAllDay``
  events become UTC-midnight instants with ``is_all_day=True``.
- **Attendees** -- Google's structured list and Outlook's
  semicolon-separated strings both become :class:`Attendee` lists.

Date filtering (:func:`occurs_on_date`) also lives here because it
depends on the same all-day semantics.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError

from day_brief.models.events import (
    Attendee,
    CanonicalEvent,
    GoogleRawEvent,
    GoogleTime,
    OutlookRawEvent,
    SourceSystem,
    is_blank_title,
)

logger = logging.getLogger(__name__)

# Outlook emits seven fractional digits ("12:00:00.0000000").
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def normalize_event(raw: GoogleRawEvent | OutlookRawEvent) -> CanonicalEvent | None:
    """Convert one raw source event into a :class:`CanonicalEvent`.

    Args:
        raw: A Google or Outlook raw event.

    Returns:
        The canonical event, or ``None`` when the event is rejected.
    """
    match raw:
        case GoogleRawEvent():
            return _normalize_google(raw)
        case OutlookRawEvent():
            return _normalize_outlook(raw)
        case _:
            raise TypeError(f"Unsupported raw event type: {type(raw).__name__}")


def normalize_events(
    raws: Iterable[GoogleRawEvent | OutlookRawEvent],
) -> tuple[list[CanonicalEvent], int]:
    """Normalize a batch of raw events.

    Returns:
        A ``(events, rejected_count)`` tuple.
    """
    events: list[CanonicalEvent] = []
    rejected = 0
    for raw in raws:
        event = normalize_event(raw)
        if event is None:
            rejected += 1
        else:
            events.append(event)
    if rejected:
        logger.info("Rejected %d invalid event(s) during normalization", rejected)
    return events, rejected


# ---------------------------------------------------------------------------
# Google
# ---------------------------------------------------------------------------


def _normalize_google(raw: GoogleRawEvent) -> CanonicalEvent | None:
    if is_blank_title(raw.summary):
        _log_rejection(raw.source, raw.id, "missing or placeholder title")
        return None
    if raw.start is None or not (raw.start.date_time or raw.start.date):
        _log_rejection(raw.source, raw.id, "no start information")
        return None

    try:
        start, all_day = _parse_google_time(raw.start)
        end = start
        if raw.end is not None and (raw.end.date_time or raw.end.date):
            end, _ = _parse_google_time(raw.end)
    except ValueError as exc:
        _log_rejection(raw.source, raw.id, f"unparseable time ({exc})")
        return None

    attendees = [
        Attendee(
            email=a.email.strip(),
            name=a.display_name,
            response_state=a.response_status,
        )
        for a in raw.attendees
        if a.email and a.email.strip()
    ]

    return _build(
        raw,
        source_id=raw.id or "",
        source_system=SourceSystem.GOOGLE,
        title=raw.summary or "",
        start=start,
        end=end,
        is_all_day=all_day,
        location=raw.location or "",
        description=raw.description or "",
        attendees=attendees,
    )


def _parse_google_time(value: GoogleTime) -> tuple[datetime, bool]:
    """Return ``(utc_instant, is_all_day)`` for a Google start/end object."""
    if value.date_time:
        parsed = _parse_iso(value.date_time)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=_zone(value.time_zone))
        return parsed.astimezone(UTC), False
    return _utc_midnight(date.fromisoformat(value.date or "")), True


# ---------------------------------------------------------------------------
# Outlook
# ---------------------------------------------------------------------------


def _normalize_outlook(raw: OutlookRawEvent) -> CanonicalEvent | None:
    if is_blank_title(raw.subject):
        _log_rejection(raw.source, raw.id, "missing or placeholder title")
        return None
    start_text = raw.start_with_time_zone or raw.start
    if not start_text or not start_text.strip():
        _log_rejection(raw.source, raw.id, "no start information")
        return None

    end_text = raw.end_with_time_zone or raw.end or start_text
    try:
        if raw.is_all_day:
            start = _utc_midnight(_parse_iso(raw.start or start_text).date())
            end = _utc_midnight(_parse_iso(raw.end or raw.start or start_text).date())
        else:
            zone = _zone(raw.time_zone)
            start = _aware(_parse_iso(start_text), zone)
            end = _aware(_parse_iso(end_text), zone)
    except ValueError as exc:
        _log_rejection(raw.source, raw.id, f"unparseable time ({exc})")
        return None

    attendees = [
        *_split_outlook_attendees(raw.required_attendees, "accepted"),
        *_split_outlook_attendees(raw.optional_attendees, "tentative"),
    ]

    return _build(
        raw,
        source_id=raw.id or "",
        source_system=SourceSystem.OUTLOOK,
        title=raw.subject or "",
        start=start,
        end=end,
        is_all_day=raw.is_all_day,
        location=raw.location or "",
        description=raw.body or "",
        attendees=attendees,
    )


def _split_outlook_attendees(value: str | None, response_state: str) -> list[Attendee]:
    """Split ``"a@x.com;b@y.com;"`` into attendees with derived names."""
    if not value:
        return []
    return [
        Attendee(
            email=email.strip(),
            name=format_name_from_email(email.strip()),
            response_state=response_state,
        )
        for email in value.split(";")
        if email.strip()
    ]


def format_name_from_email(email: str) -> str:
    """Derive a display name from an email address.

    ``first.last@company.com`` becomes ``"First Last"``; any other local
    part is returned unchanged.
    """
    username = email.split("@", 1)[0]
    parts = username.split(".")
    if len(parts) == 2 and all(parts):
        return " ".join(part[0].upper() + part[1:].lower() for part in parts)
    return username


# ---------------------------------------------------------------------------
# Date filtering
# ---------------------------------------------------------------------------


def occurs_on_date(event: CanonicalEvent, day: date, tz: tzinfo) -> bool:
    """Whether *event* falls on *day* in the reference timezone *tz*.

    Timed events occur on a date when they start on it or span it.
    All-day events use exclusive end dates (``start <= day < end``); a
    single-day event whose end equals its start counts for its start day.
    """
    if event.is_all_day:
        first = event.start.date()
        last_exclusive = max(event.end.date(), first + timedelta(days=1))
        return first <= day < last_exclusive

    start_day = event.start.astimezone(tz).date()
    end_local = event.end.astimezone(tz)
    end_day = end_local.date()
    # An event ending exactly at midnight does not spill into that day.
    if event.end > event.start and end_local.time() == time.min:
        end_day -= timedelta(days=1)
    return start_day == day or (start_day <= day <= end_day)


def filter_events_by_date(
    events: Iterable[CanonicalEvent], day: date, tz: tzinfo
) -> list[CanonicalEvent]:
    """Keep only the events that occur on *day*."""
    return [event for event in events if occurs_on_date(event, day, tz)]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build(raw: GoogleRawEvent | OutlookRawEvent, **fields: object) -> CanonicalEvent | None:
    """Construct the canonical event, rejecting it if validation fails."""
    ical_uid = raw.ical_uid.strip() if raw.ical_uid and raw.ical_uid.strip() else None
    if not fields["source_id"]:
        fields["source_id"] = ical_uid or ""
    if not fields["source_id"]:
        _log_rejection(raw.source, None, "no source identifier")
        return None
    try:
        return CanonicalEvent(ical_uid=ical_uid, **fields)  # type: ignore[arg-type]
    except ValidationError as exc:
        _log_rejection(raw.source, raw.id, f"invalid event ({exc.error_count()} error(s))")
        return None


def _parse_iso(value: str) -> datetime:
    text = _FRACTION_RE.sub(r"\1", value.strip())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _aware(value: datetime, zone: tzinfo) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=zone)
    return value.astimezone(UTC)


def _utc_midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=UTC)


def _zone(name: str | None) -> tzinfo:
    if not name:
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, assuming UTC", name)
        return UTC


def _log_rejection(source: str, event_id: str | None, reason: str) -> None:
    logger.info(
        "Rejecting %s event (id=%s): %s",
        source,
        event_id or "unknown",
        reason,
    )
