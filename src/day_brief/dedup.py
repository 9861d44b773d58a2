"""Collapse events that represent the same real-world occurrence.

Identity rules, applied within one date's candidate set:

1. **Source identity** -- when a source supplies a stable occurrence
   identifier (iCalendar UID), that is the key.
2. **Fallback** -- lowercase trimmed title plus the start instant in a
   single UTC representation, so ``2025-01-01T00:00:00Z`` and
   ``2025-01-01T00:00:00+00:00`` compare equal.

When two events share a key the first one seen is kept, unless a later
one comes from a source ranked higher in :data:`SOURCE_PREFERENCE`
(Outlook carries richer attendee metadata than Google).  The losing event
is discarded whole; its unique fields are not merged into the winner.

Fuzzy title matching is not part of identity.  It can be layered on by
passing a :class:`TitleScorer` (e.g. :class:`TokenSetTitleScorer`), which
only compares events that already share a start instant.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC
from typing import Protocol

from rapidfuzz.fuzz import token_set_ratio

from day_brief.models.events import CanonicalEvent, SourceSystem

logger = logging.getLogger(__name__)

SOURCE_PREFERENCE: dict[SourceSystem, int] = {
    SourceSystem.OUTLOOK: 2,
    SourceSystem.GOOGLE: 1,
}
"""Higher rank wins a duplicate tie-break."""


class TitleScorer(Protocol):
    """Scores how likely two titles name the same event."""

    threshold: float

    def score(self, left: str, right: str) -> float:
        """Return a similarity score between 0 and 100."""
        ...


@dataclass(frozen=True)
class TokenSetTitleScorer:
    """Title similarity via ``rapidfuzz.fuzz.token_set_ratio``.

    Token-set matching ignores word order and repeated words, so
    ``"Weekly Sync - Design"`` and ``"Design weekly sync"`` score 100.

    Attributes:
        threshold: Minimum score (0-100) treated as a match.
    """

    threshold: float = 90.0

    def score(self, left: str, right: str) -> float:
        return token_set_ratio(left.lower(), right.lower())


@dataclass
class DedupResult:
    """Deduplicated events plus how many were collapsed."""

    events: list[CanonicalEvent] = field(default_factory=list)
    duplicates: int = 0


def identity_key(event: CanonicalEvent) -> str:
    """Return the deduplication key for *event*."""
    if event.ical_uid:
        return f"ical:{event.ical_uid}"
    start = event.start.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    return f"title:{event.title.strip().lower()}|{start}"


def prefer(existing: CanonicalEvent, candidate: CanonicalEvent) -> CanonicalEvent:
    """Pick the winner of two events with the same identity.

    The candidate only replaces the existing event when its source ranks
    strictly higher; otherwise first-seen wins.
    """
    if SOURCE_PREFERENCE[candidate.source_system] > SOURCE_PREFERENCE[existing.source_system]:
        return candidate
    return existing


def deduplicate_events(
    events: Iterable[CanonicalEvent],
    scorer: TitleScorer | None = None,
) -> DedupResult:
    """Deduplicate one date's normalized events.

    Args:
        events: Normalized events for a single date, ideally sorted by
            start so "first seen" is deterministic.
        scorer: Optional fuzzy title scorer for a second, near-duplicate
            pass over events that share a start instant.

    Returns:
        A :class:`DedupResult` preserving the order in which each identity
        was first seen.
    """
    kept: dict[str, CanonicalEvent] = {}
    duplicates = 0

    for event in events:
        key = identity_key(event)
        existing = kept.get(key)
        if existing is None:
            kept[key] = event
            continue
        duplicates += 1
        winner = prefer(existing, event)
        if winner is event:
            logger.info(
                "Dedup: preferring %s over %s for '%s'",
                event.source_category,
                existing.source_category,
                event.title,
            )
        else:
            logger.info("Dedup: skipping duplicate '%s'", event.title)
        kept[key] = winner

    result = list(kept.values())
    if scorer is not None:
        result, fuzzy = _collapse_similar(result, scorer)
        duplicates += fuzzy

    return DedupResult(events=result, duplicates=duplicates)


def _collapse_similar(
    events: list[CanonicalEvent],
    scorer: TitleScorer,
) -> tuple[list[CanonicalEvent], int]:
    """Merge events at the same instant whose titles score as a match."""
    kept: list[CanonicalEvent] = []
    collapsed = 0

    for event in events:
        for i, existing in enumerate(kept):
            if existing.start != event.start:
                continue
            if scorer.score(existing.title, event.title) < scorer.threshold:
                continue
            collapsed += 1
            kept[i] = prefer(existing, event)
            logger.info(
                "Dedup: '%s' and '%s' look like the same event",
                existing.title,
                event.title,
            )
            break
        else:
            kept.append(event)

    return kept, collapsed
