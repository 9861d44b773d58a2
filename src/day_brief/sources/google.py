"""Google Calendar source.

Lists the events of one date across the configured calendar ids with the
``googleapiclient`` Calendar v3 resource.  The client library is blocking,
so each fetch runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from pydantic import ValidationError

from day_brief.models.events import GoogleRawEvent
from day_brief.sources.exceptions import with_retry

logger = logging.getLogger(__name__)


class GoogleCalendarSource:
    """Read-only Google Calendar adapter.

    Args:
        credentials: Valid Google OAuth 2.0 credentials.
        timezone: Reference timezone that defines the date window.
        calendar_ids: Calendars merged into one source (default primary).
        service: Optional pre-built ``googleapiclient`` resource.  Pass a
            mock here in tests.
    """

    name = "google"

    def __init__(
        self,
        credentials: Credentials | None,
        timezone: ZoneInfo,
        calendar_ids: tuple[str, ...] = ("primary",),
        service: Any | None = None,
    ) -> None:
        self._credentials = credentials
        self._tz = timezone
        self._calendar_ids = calendar_ids
        self._service = service or build("calendar", "v3", credentials=credentials)

    def _refresh_credentials(self) -> None:
        """Refresh OAuth credentials; called by ``@with_retry`` on 401."""
        if self._credentials is None:
            return
        self._credentials.refresh(Request())
        self._service = build("calendar", "v3", credentials=self._credentials)
        logger.info("Credentials refreshed and service rebuilt")

    async def fetch(self, day: date) -> list[GoogleRawEvent]:
        time_min = datetime.combine(day, time.min, tzinfo=self._tz)
        time_max = time_min + timedelta(days=1)
        items: list[dict] = []
        for calendar_id in self._calendar_ids:
            items.extend(
                await asyncio.to_thread(self.list_events, calendar_id, time_min, time_max)
            )

        events: list[GoogleRawEvent] = []
        for item in items:
            if item.get("status") == "cancelled":
                continue
            try:
                events.append(GoogleRawEvent.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping unreadable Google event %s: %s", item.get("id"), exc)

        logger.info("Fetched %d Google event(s) for %s", len(events), day.isoformat())
        return events

    @with_retry()
    def list_events(self, calendar_id: str, time_min: datetime, time_max: datetime) -> list[dict]:
        """Fetch every page of events for one calendar in ``[time_min, time_max)``."""
        all_events: list[dict] = []
        page_token: str | None = None

        while True:
            response = (
                self._service.events()
                .list(
                    calendarId=calendar_id,
                    timeMin=time_min.isoformat(),
                    timeMax=time_max.isoformat(),
                    singleEvents=True,
                    orderBy="startTime",
                    pageToken=page_token,
                )
                .execute()
            )
            all_events.extend(response.get("items", []))
            page_token = response.get("nextPageToken")
            if page_token is None:
                break

        logger.debug("Calendar %s returned %d item(s)", calendar_id, len(all_events))
        return all_events
