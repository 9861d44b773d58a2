"""Per-event enrichment between deduplication and persistence.

Order per event: attendee enrichment, project linkage, Work/Life
category, then a summary for Work events only.  Oracle failures never
block persistence: the event simply goes on without that enrichment.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Literal, Protocol

from day_brief.enrichment.attendees import AttendeeEnricher
from day_brief.models.events import CanonicalEvent, Enrichment, SourceSystem
from day_brief.storage.base import EventStore

logger = logging.getLogger(__name__)

Category = Literal["Work", "Life"]


class EnrichmentOracle(Protocol):
    """Project classification and summary generation."""

    async def classify(self, event: CanonicalEvent) -> Enrichment | None:
        """Return project linkage (and the project's category) or ``None``."""
        ...

    async def summarize(self, event: CanonicalEvent) -> str | None:
        """Return a short summary of *event*, or ``None``."""
        ...


def categorize_event(
    event: CanonicalEvent, project_context: Category | None = None
) -> Category:
    """Decide whether *event* is Work or Life.

    - Google events are Life.
    - Outlook events with attendees are Work.
    - Outlook events without attendees are Work unless their linked
      project is a Life project.
    """
    if event.source_system is SourceSystem.GOOGLE:
        return "Life"
    if event.attendees:
        return "Work"
    return "Life" if project_context == "Life" else "Work"


def timing_changed(stored: CanonicalEvent, event: CanonicalEvent) -> bool:
    """Whether the title or timing differs from the stored version."""
    return (
        stored.title != event.title
        or stored.start != event.start
        or stored.end != event.end
    )


class EnrichmentStage:
    """Runs the enrichment oracles over one date's events.

    Args:
        store: Used to reuse summaries of unchanged events.
        oracle: Project/summary oracle; ``None`` skips classification
            and summaries.
        attendees: Attendee enricher; ``None`` leaves attendees as-is.
    """

    def __init__(
        self,
        store: EventStore,
        oracle: EnrichmentOracle | None = None,
        attendees: AttendeeEnricher | None = None,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._attendees = attendees

    async def enrich(self, events: Iterable[CanonicalEvent]) -> list[CanonicalEvent]:
        """Enrich *events* sequentially, preserving order."""
        enriched = [await self.enrich_event(event) for event in events]
        work = sum(1 for event in enriched if event.category == "Work")
        logger.info(
            "Enrichment: %d Work, %d Life event(s)", work, len(enriched) - work
        )
        return enriched

    async def enrich_event(self, event: CanonicalEvent) -> CanonicalEvent:
        """Return an enriched copy of *event*."""
        update: dict[str, object] = {}

        if self._attendees is not None and event.attendees:
            update["attendees"] = await self._attendees.enrich(event.attendees)
            event = event.model_copy(update=update)

        stored = await self._find_stored(event)

        enrichment = await self._classify(event)
        if enrichment is not None and enrichment.project_ref:
            project_ref: str | None = enrichment.project_ref
        else:
            project_ref = stored.project_ref if stored is not None else None
        project_context = enrichment.category if enrichment is not None else None

        category = categorize_event(event, project_context)
        event = event.model_copy(
            update={"project_ref": project_ref, "category": category, "summary_text": None}
        )

        if category == "Work":
            if stored is not None and stored.summary_text and not timing_changed(stored, event):
                logger.debug("Reusing stored summary for '%s'", event.title)
                summary: str | None = stored.summary_text
            else:
                summary = await self._summarize(event)
            event = event.model_copy(update={"summary_text": summary})

        return event

    async def _find_stored(self, event: CanonicalEvent) -> CanonicalEvent | None:
        try:
            return await self._store.find_event(event.source_id, event.source_system)
        except Exception:
            logger.warning("Could not load stored copy of '%s'", event.title, exc_info=True)
            return None

    async def _classify(self, event: CanonicalEvent) -> Enrichment | None:
        if self._oracle is None:
            return None
        try:
            return await self._oracle.classify(event)
        except Exception as exc:
            logger.warning("Project classification failed for '%s': %s", event.title, exc)
            return None

    async def _summarize(self, event: CanonicalEvent) -> str | None:
        if self._oracle is None:
            return None
        try:
            return await self._oracle.summarize(event)
        except Exception as exc:
            logger.warning("Summary generation failed for '%s': %s", event.title, exc)
            return None
