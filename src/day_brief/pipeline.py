"""Reconciliation pipeline orchestrator.

Wires the stages together for each target date:

1. **Fetch** -- every calendar source concurrently, each isolated so a
   failing source contributes an empty list.
2. **Normalize** -- raw events to canonical events; invalid ones dropped.
3. **Sort and filter** -- by start instant, then to the events occurring
   on the date in the reference timezone.
4. **Deduplicate** -- collapse occurrences seen in both sources.
5. **Exclude** -- drop titles on the exclusion list.
6. **Enrich** -- attendees, project linkage, category, summary.
7. **Persist** -- upsert events and merge the day index.

Dates are processed strictly one after another.  The top-level entry
point is :meth:`Reconciler.run_pass`, normally invoked through the
scheduler.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from day_brief.dedup import TitleScorer, deduplicate_events
from day_brief.enrichment.stage import EnrichmentStage
from day_brief.models.events import CanonicalEvent, GoogleRawEvent, OutlookRawEvent
from day_brief.models.results import DateOutcome
from day_brief.normalizer import filter_events_by_date, normalize_events
from day_brief.sources.base import CalendarSource
from day_brief.writer import PersistenceWriter

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def exclude_titles(
    events: Iterable[CanonicalEvent], excluded: Iterable[str]
) -> tuple[list[CanonicalEvent], int]:
    """Drop events whose trimmed title matches *excluded* (case-insensitive).

    Returns:
        A ``(kept, excluded_count)`` tuple.
    """
    blocked = {title.strip().lower() for title in excluded}
    kept: list[CanonicalEvent] = []
    dropped = 0
    for event in events:
        if event.title.strip().lower() in blocked:
            logger.info("Excluded by title: '%s'", event.title)
            dropped += 1
        else:
            kept.append(event)
    return kept, dropped


class Reconciler:
    """Runs reconciliation passes over the configured dates.

    Args:
        sources: Calendar sources fetched for every date.
        enrichment: The enrichment stage.
        writer: The persistence writer.
        timezone: Reference timezone defining "today" and date membership.
        days_ahead: Dates per pass, starting today.
        excluded_titles: Titles dropped after deduplication.
        scorer: Optional near-duplicate title scorer for the deduplicator.
        clock: Returns "now"; override in tests.
    """

    def __init__(
        self,
        sources: Sequence[CalendarSource],
        enrichment: EnrichmentStage,
        writer: PersistenceWriter,
        timezone: ZoneInfo,
        days_ahead: int = 2,
        excluded_titles: Iterable[str] = ("Busy",),
        scorer: TitleScorer | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._sources = list(sources)
        self._enrichment = enrichment
        self._writer = writer
        self._tz = timezone
        self._days_ahead = days_ahead
        self._excluded_titles = tuple(excluded_titles)
        self._scorer = scorer
        self._clock = clock

    def target_dates(self) -> list[date]:
        """Today and the following dates, in the reference timezone."""
        today = self._clock().astimezone(self._tz).date()
        return [today + timedelta(days=offset) for offset in range(self._days_ahead)]

    async def run_pass(self) -> list[DateOutcome]:
        """Reconcile every target date, sequentially.

        A date whose persistence step raises is recorded with its error
        and the pass moves on to the next date.
        """
        outcomes: list[DateOutcome] = []
        for day in self.target_dates():
            outcomes.append(await self.reconcile_date(day))
        return outcomes

    async def reconcile_date(self, day: date) -> DateOutcome:
        """Run one reconciliation pass for *day*."""
        logger.info("Processing %s", day.isoformat())
        outcome = DateOutcome(day=day)

        fetched = await self._fetch_all(day)
        outcome.fetched = {name: len(raws) for name, raws in fetched.items()}
        logger.info(
            "Sources: %s",
            ", ".join(f"{name}={count}" for name, count in outcome.fetched.items()) or "none",
        )

        raws = [raw for batch in fetched.values() for raw in batch]
        events, outcome.rejected = normalize_events(raws)
        events.sort(key=lambda event: event.start)
        events = filter_events_by_date(events, day, self._tz)

        deduped = deduplicate_events(events, scorer=self._scorer)
        outcome.duplicates = deduped.duplicates
        events, outcome.excluded = exclude_titles(deduped.events, self._excluded_titles)
        logger.info(
            "%s: %d candidate event(s) (%d rejected, %d duplicate, %d excluded)",
            day.isoformat(),
            len(events),
            outcome.rejected,
            outcome.duplicates,
            outcome.excluded,
        )

        try:
            events = await self._enrichment.enrich(events)
            outcome.write = await self._writer.write_date(day, events)
        except Exception as exc:
            outcome.error = str(exc)
            logger.exception("%s: failed to persist events", day.isoformat())

        return outcome

    async def _fetch_all(
        self, day: date
    ) -> dict[str, list[GoogleRawEvent | OutlookRawEvent]]:
        batches = await asyncio.gather(
            *(self._fetch_isolated(source, day) for source in self._sources)
        )
        return {source.name: batch for source, batch in zip(self._sources, batches)}

    @staticmethod
    async def _fetch_isolated(
        source: CalendarSource, day: date
    ) -> list[GoogleRawEvent | OutlookRawEvent]:
        try:
            return list(await source.fetch(day))
        except Exception as exc:
            logger.error("%s calendar failed for %s: %s", source.name, day.isoformat(), exc)
            return []
