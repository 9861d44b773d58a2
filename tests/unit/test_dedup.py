"""Tests for event deduplication."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

from day_brief.dedup import (
    TokenSetTitleScorer,
    deduplicate_events,
    identity_key,
    prefer,
)
from day_brief.models.events import SourceSystem

GOOGLE = SourceSystem.GOOGLE
OUTLOOK = SourceSystem.OUTLOOK


class TestIdentityKey:
    """Tests for identity_key."""

    def test_ical_uid_is_primary_key(self, make_event) -> None:
        event = make_event(ical_uid="abc@host")

        assert identity_key(event) == "ical:abc@host"

    def test_fallback_is_title_and_utc_start(self, make_event) -> None:
        event = make_event(title="  Project Sync ")

        assert identity_key(event) == "title:project sync|2025-10-06T14:00:00.000Z"

    def test_offset_spelling_does_not_matter(self, make_event) -> None:
        """The same instant written with Z, +00:00 or another offset keys equal."""
        z = make_event(start=datetime.fromisoformat("2025-01-01T00:00:00+00:00"))
        offset = make_event(
            start=datetime(2024, 12, 31, 19, 0, tzinfo=timezone(timedelta(hours=-5))),
            end=datetime(2025, 1, 1, 1, 0, tzinfo=UTC),
        )

        assert identity_key(z) == identity_key(offset)

    def test_different_start_differs(self, make_event) -> None:
        assert identity_key(make_event(hour=9)) != identity_key(make_event(hour=10))


class TestDeduplicateEvents:
    """Tests for deduplicate_events."""

    def test_distinct_events_untouched(self, make_event) -> None:
        events = [make_event(title="A", hour=9), make_event(title="B", hour=10)]

        result = deduplicate_events(events)

        assert result.events == events
        assert result.duplicates == 0

    def test_same_ical_uid_collapses_across_titles(self, make_event) -> None:
        first = make_event(title="Sync", ical_uid="uid-1", source=GOOGLE)
        second = make_event(title="Sync (updated)", ical_uid="uid-1", source=GOOGLE, hour=15)

        result = deduplicate_events([first, second])

        assert result.events == [first]
        assert result.duplicates == 1

    def test_outlook_preferred_over_google(self, make_event) -> None:
        google = make_event(title="Board meeting", source=GOOGLE)
        outlook = make_event(title="board meeting", source=OUTLOOK)

        result = deduplicate_events([google, outlook])

        assert result.events == [outlook]
        assert result.duplicates == 1

    def test_first_seen_wins_between_equal_sources(self, make_event) -> None:
        first = make_event(title="Lunch", source=GOOGLE, source_id="g-1")
        second = make_event(title="Lunch", source=GOOGLE, source_id="g-2")

        result = deduplicate_events([first, second])

        assert [e.source_id for e in result.events] == ["g-1"]

    def test_loser_fields_not_merged(self, make_event) -> None:
        google = make_event(title="Offsite", source=GOOGLE, location="Lake house")
        outlook = make_event(title="Offsite", source=OUTLOOK)

        result = deduplicate_events([google, outlook])

        assert result.events[0].location == ""

    def test_output_keeps_first_seen_order(self, make_event) -> None:
        a = make_event(title="A", hour=9, source=GOOGLE)
        b = make_event(title="B", hour=10)
        a_outlook = make_event(title="A", hour=9, source=OUTLOOK)

        result = deduplicate_events([a, b, a_outlook])

        assert [e.title for e in result.events] == ["A", "B"]
        assert result.events[0].source_system is OUTLOOK

    def test_fuzzy_titles_not_collapsed_without_scorer(self, make_event) -> None:
        events = [make_event(title="Weekly Sync - Design"), make_event(title="Design weekly sync")]

        assert deduplicate_events(events).duplicates == 0


class TestFuzzyScorer:
    """Tests for the optional near-duplicate pass."""

    def test_reordered_title_collapsed(self, make_event) -> None:
        google = make_event(title="Weekly Sync - Design", source=GOOGLE)
        outlook = make_event(title="Design weekly sync", source=OUTLOOK)

        result = deduplicate_events([google, outlook], scorer=TokenSetTitleScorer())

        assert result.events == [outlook]
        assert result.duplicates == 1

    def test_only_same_start_compared(self, make_event) -> None:
        events = [
            make_event(title="Design sync", hour=9),
            make_event(title="Design sync", hour=10),
        ]

        result = deduplicate_events(events, scorer=TokenSetTitleScorer())

        assert len(result.events) == 2

    def test_dissimilar_titles_kept(self, make_event) -> None:
        events = [make_event(title="Dentist"), make_event(title="Budget review")]

        result = deduplicate_events(events, scorer=TokenSetTitleScorer())

        assert len(result.events) == 2

    def test_scorer_is_case_insensitive(self) -> None:
        assert TokenSetTitleScorer().score("DESIGN SYNC", "design sync") == 100


class TestPrefer:
    def test_higher_rank_wins(self, make_event) -> None:
        google = make_event(source=GOOGLE)
        outlook = make_event(source=OUTLOOK)

        assert prefer(google, outlook) is outlook
        assert prefer(outlook, google) is outlook
