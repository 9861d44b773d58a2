"""Tests for the Outlook export source, using ``httpx.MockTransport``."""

from __future__ import annotations

from datetime import date

import httpx
import pytest

from day_brief.exceptions import SourceFetchError
from day_brief.sources.outlook import OutlookExportSource

EXPORT_URL = "https://example.com/outlook.json"

EXPORT = {
    "value": [
        {
            "id": "o-1",
            "subject": "Quarterly review",
            "start": "2025-10-06T12:00:00.0000000",
            "end": "2025-10-06T13:00:00.0000000",
            "timeZone": "UTC",
            "isAllDay": False,
            "requiredAttendees": "jane.doe@client.com;",
        },
        {
            "id": "o-2",
            "subject": "Offsite",
            "start": "2025-10-07T00:00:00.0000000",
            "end": "2025-10-08T00:00:00.0000000",
            "isAllDay": True,
        },
    ]
}


def _source(handler) -> OutlookExportSource:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OutlookExportSource(EXPORT_URL, client=client)


class TestFetch:
    async def test_parses_export(self) -> None:
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, json=EXPORT)

        events = await _source(handler).fetch(date(2025, 10, 6))

        assert requested == [EXPORT_URL]
        assert [e.subject for e in events] == ["Quarterly review", "Offsite"]
        assert events[0].required_attendees == "jane.doe@client.com;"
        assert events[1].is_all_day is True

    async def test_bare_list_accepted(self) -> None:
        events = await _source(lambda _r: httpx.Response(200, json=EXPORT["value"])).fetch(
            date(2025, 10, 6)
        )

        assert len(events) == 2

    async def test_unreadable_item_skipped(self) -> None:
        payload = {"value": [{"id": "bad", "isAllDay": "sometimes"}, EXPORT["value"][0]]}

        events = await _source(lambda _r: httpx.Response(200, json=payload)).fetch(
            date(2025, 10, 6)
        )

        assert [e.id for e in events] == ["o-1"]


class TestFailures:
    """Every failure surfaces as SourceFetchError for the pipeline to isolate."""

    async def test_http_error_status(self) -> None:
        source = _source(lambda _r: httpx.Response(503))

        with pytest.raises(SourceFetchError, match="download failed") as exc_info:
            await source.fetch(date(2025, 10, 6))

        assert exc_info.value.source == "outlook"

    async def test_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(SourceFetchError):
            await _source(handler).fetch(date(2025, 10, 6))

    async def test_not_json(self) -> None:
        source = _source(lambda _r: httpx.Response(200, text="<html>login</html>"))

        with pytest.raises(SourceFetchError, match="not JSON"):
            await source.fetch(date(2025, 10, 6))

    async def test_missing_value_list(self) -> None:
        source = _source(lambda _r: httpx.Response(200, json={"error": "expired"}))

        with pytest.raises(SourceFetchError, match="'value'"):
            await source.fetch(date(2025, 10, 6))
