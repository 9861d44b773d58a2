"""Outlook calendar source backed by a JSON export.

The export is a Graph-style document ``{"value": [event, ...]}`` (the shape
Power Automate / Graph calendar-view exports produce).  The whole export is
downloaded per fetch; the normalizer's date filter narrows it to one date.
"""

from __future__ import annotations

import logging
from datetime import date

import httpx
from pydantic import ValidationError

from day_brief.exceptions import SourceFetchError
from day_brief.models.events import OutlookRawEvent

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30.0


class OutlookExportSource:
    """Outlook adapter that reads a calendar export over HTTP.

    Args:
        url: Location of the JSON export.
        client: Optional shared :class:`httpx.AsyncClient`.  When omitted a
            short-lived client is opened per fetch.
        timeout: Request timeout in seconds.
    """

    name = "outlook"

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._url = url
        self._client = client
        self._timeout = timeout

    async def fetch(self, day: date) -> list[OutlookRawEvent]:
        payload = await self._download()

        items = payload.get("value") if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise SourceFetchError("Outlook export has no 'value' list", source=self.name)

        events: list[OutlookRawEvent] = []
        for item in items:
            try:
                events.append(OutlookRawEvent.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping unreadable Outlook event: %s", exc)

        logger.info(
            "Fetched %d Outlook event(s) from export (for %s)", len(events), day.isoformat()
        )
        return events

    async def _download(self) -> object:
        try:
            if self._client is not None:
                response = await self._client.get(self._url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self._url)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as exc:
            raise SourceFetchError(f"Outlook export download failed: {exc}", source=self.name) from exc
        except ValueError as exc:
            raise SourceFetchError(f"Outlook export is not JSON: {exc}", source=self.name) from exc
