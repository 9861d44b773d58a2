"""Enrichment oracles: attendee details, project linkage and summaries."""

from __future__ import annotations

from day_brief.enrichment.attendees import (
    AttendeeEnricher,
    AttendeeLookup,
    PeopleDataLabsLookup,
)
from day_brief.enrichment.projects import (
    KeywordProjectClassifier,
    Project,
    load_projects,
    match_projects_by_keywords,
)
from day_brief.enrichment.stage import (
    EnrichmentOracle,
    EnrichmentStage,
    categorize_event,
)

__all__ = [
    "AttendeeEnricher",
    "AttendeeLookup",
    "EnrichmentOracle",
    "EnrichmentStage",
    "KeywordProjectClassifier",
    "PeopleDataLabsLookup",
    "Project",
    "categorize_event",
    "load_projects",
    "match_projects_by_keywords",
]
