"""Builds the runtime object graph from :class:`~day_brief.config.Settings`.

Optional collaborators are wired in only when configured:

- Google Calendar when the OAuth secrets or a cached token exist.
- Outlook when ``OUTLOOK_EXPORT_URL`` is set.
- Gemini enrichment when ``GEMINI_API_KEY`` is set, keyword-only project
  linking otherwise.
- Attendee lookups when ``PDL_API_KEY`` is set.
- Fuzzy title deduplication when ``FUZZY_DEDUP_THRESHOLD`` is set.
"""

from __future__ import annotations

import logging

from day_brief.config import Settings
from day_brief.dedup import TokenSetTitleScorer
from day_brief.enrichment.attendees import AttendeeEnricher, PeopleDataLabsLookup
from day_brief.enrichment.projects import KeywordProjectClassifier, load_projects
from day_brief.enrichment.stage import EnrichmentOracle, EnrichmentStage
from day_brief.pipeline import Reconciler
from day_brief.scheduler import ReconciliationScheduler
from day_brief.sources.base import CalendarSource
from day_brief.sources.exceptions import CalendarAuthError
from day_brief.sources.outlook import OutlookExportSource
from day_brief.storage.base import EventStore
from day_brief.writer import PersistenceWriter

logger = logging.getLogger(__name__)


def build_sources(settings: Settings, *, interactive: bool = True) -> list[CalendarSource]:
    """Create the configured calendar sources."""
    sources: list[CalendarSource] = []

    if settings.google_token_path.exists() or settings.google_credentials_path.exists():
        from day_brief.sources.auth import get_calendar_credentials
        from day_brief.sources.google import GoogleCalendarSource

        try:
            credentials = get_calendar_credentials(
                settings.google_credentials_path,
                settings.google_token_path,
                interactive=interactive,
            )
        except CalendarAuthError as exc:
            logger.error("Google Calendar disabled for this run: %s", exc)
        else:
            sources.append(
                GoogleCalendarSource(
                    credentials,
                    timezone=settings.tz,
                    calendar_ids=settings.google_calendar_ids,
                )
            )
    else:
        logger.warning("Google Calendar not configured (no credentials or token)")

    if settings.outlook_export_url:
        sources.append(OutlookExportSource(settings.outlook_export_url))
    else:
        logger.warning("Outlook calendar not configured (OUTLOOK_EXPORT_URL unset)")

    return sources


def build_enrichment(settings: Settings, store: EventStore) -> EnrichmentStage:
    """Create the enrichment stage with whichever oracles are configured."""
    projects = load_projects(settings.projects_path)

    oracle: EnrichmentOracle
    if settings.gemini_api_key:
        from day_brief.enrichment.gemini import GeminiEnrichmentOracle

        oracle = GeminiEnrichmentOracle(settings.gemini_api_key, projects)
    else:
        logger.info("GEMINI_API_KEY unset; keyword-only project linking, no summaries")
        oracle = KeywordProjectClassifier(projects)

    attendees = None
    if settings.pdl_api_key:
        attendees = AttendeeEnricher(
            store,
            PeopleDataLabsLookup(settings.pdl_api_key),
            monthly_budget=settings.lookup_monthly_budget,
            internal_domains=settings.internal_domains,
            owner_emails=settings.owner_emails,
        )

    return EnrichmentStage(store, oracle=oracle, attendees=attendees)


def build_scheduler(
    settings: Settings,
    store: EventStore,
    sources: list[CalendarSource],
) -> ReconciliationScheduler:
    """Wire sources, enrichment and writer into a scheduler."""
    scorer = None
    if settings.fuzzy_dedup_threshold is not None:
        scorer = TokenSetTitleScorer(threshold=settings.fuzzy_dedup_threshold)

    reconciler = Reconciler(
        sources=sources,
        enrichment=build_enrichment(settings, store),
        writer=PersistenceWriter(store, failure_threshold=settings.failure_threshold),
        timezone=settings.tz,
        days_ahead=settings.days_ahead,
        excluded_titles=settings.excluded_titles,
        scorer=scorer,
    )
    return ReconciliationScheduler(reconciler, cron=settings.schedule_cron, timezone=settings.tz)
