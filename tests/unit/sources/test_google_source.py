"""Tests for the Google Calendar source, with a mocked ``googleapiclient`` service."""

from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

import pytest

from day_brief.models.events import GoogleRawEvent
from day_brief.sources.exceptions import CalendarNotFoundError
from day_brief.sources.google import GoogleCalendarSource

NEW_YORK = ZoneInfo("America/New_York")


def _item(event_id: str, **extra: object) -> dict:
    item: dict[str, object] = {
        "id": event_id,
        "summary": f"Event {event_id}",
        "start": {"dateTime": "2025-10-06T09:00:00-04:00"},
        "end": {"dateTime": "2025-10-06T10:00:00-04:00"},
        "status": "confirmed",
    }
    item.update(extra)
    return item


def _service(*pages: dict) -> MagicMock:
    """A Calendar v3 service whose ``events().list().execute()`` returns *pages*."""
    service = MagicMock()
    service.events.return_value.list.return_value.execute.side_effect = list(pages)
    return service


def _source(service: MagicMock, **kwargs) -> GoogleCalendarSource:
    return GoogleCalendarSource(None, timezone=NEW_YORK, service=service, **kwargs)


class TestFetch:
    async def test_returns_raw_events(self) -> None:
        service = _service({"items": [_item("a"), _item("b")]})

        events = await _source(service).fetch(date(2025, 10, 6))

        assert [e.id for e in events] == ["a", "b"]
        assert all(isinstance(e, GoogleRawEvent) for e in events)
        assert events[0].start is not None
        assert events[0].start.date_time == "2025-10-06T09:00:00-04:00"

    async def test_window_is_local_day(self) -> None:
        service = _service({"items": []})

        await _source(service).fetch(date(2025, 10, 6))

        kwargs = service.events.return_value.list.call_args.kwargs
        assert kwargs["calendarId"] == "primary"
        assert kwargs["timeMin"] == "2025-10-06T00:00:00-04:00"
        assert kwargs["timeMax"] == "2025-10-07T00:00:00-04:00"
        assert kwargs["singleEvents"] is True

    async def test_pagination_followed(self) -> None:
        service = _service(
            {"items": [_item("a")], "nextPageToken": "page-2"},
            {"items": [_item("b")]},
        )

        events = await _source(service).fetch(date(2025, 10, 6))

        assert [e.id for e in events] == ["a", "b"]
        last_call = service.events.return_value.list.call_args.kwargs
        assert last_call["pageToken"] == "page-2"

    async def test_cancelled_events_skipped(self) -> None:
        service = _service({"items": [_item("a"), _item("b", status="cancelled")]})

        events = await _source(service).fetch(date(2025, 10, 6))

        assert [e.id for e in events] == ["a"]

    async def test_unreadable_item_skipped(self) -> None:
        service = _service({"items": [_item("a", attendees="not-a-list"), _item("b")]})

        events = await _source(service).fetch(date(2025, 10, 6))

        assert [e.id for e in events] == ["b"]

    async def test_multiple_calendars_merged(self) -> None:
        service = _service({"items": [_item("a")]}, {"items": [_item("b")]})

        events = await _source(service, calendar_ids=("primary", "family")).fetch(
            date(2025, 10, 6)
        )

        assert [e.id for e in events] == ["a", "b"]
        calendar_ids = [
            call.kwargs["calendarId"]
            for call in service.events.return_value.list.call_args_list
        ]
        assert calendar_ids == ["primary", "family"]

    async def test_http_error_raised(self, make_http_error) -> None:
        service = MagicMock()
        service.events.return_value.list.return_value.execute.side_effect = make_http_error(404)

        with pytest.raises(CalendarNotFoundError):
            await _source(service).fetch(date(2025, 10, 6))


class TestRefreshCredentials:
    def test_refresh_rebuilds_service(self, mock_credentials: MagicMock) -> None:
        with patch("day_brief.sources.google.build") as mock_build:
            source = GoogleCalendarSource(mock_credentials, timezone=NEW_YORK)
            source._refresh_credentials()

        mock_credentials.refresh.assert_called_once()
        assert mock_build.call_count == 2
        mock_build.assert_called_with("calendar", "v3", credentials=mock_credentials)

    def test_refresh_without_credentials_is_noop(self) -> None:
        source = _source(MagicMock())

        source._refresh_credentials()
