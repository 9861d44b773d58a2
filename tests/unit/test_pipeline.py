"""Tests for the reconciliation pipeline orchestrator."""

from __future__ import annotations

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

from day_brief.enrichment.stage import EnrichmentStage
from day_brief.models.events import GoogleRawEvent, OutlookRawEvent
from day_brief.pipeline import Reconciler, exclude_titles
from day_brief.reader import ConsistencyReader
from day_brief.scheduler import ReconciliationScheduler
from day_brief.storage.memory import InMemoryStore
from day_brief.writer import PersistenceWriter

NEW_YORK = ZoneInfo("America/New_York")
DAY = date(2025, 10, 6)
NOW = datetime(2025, 10, 6, 10, 0, tzinfo=UTC)


class StaticSource:
    """A calendar source returning fixed raw events."""

    def __init__(self, name: str, events: list) -> None:
        self.name = name
        self.events = events
        self.days: list[date] = []

    async def fetch(self, day: date) -> list:
        self.days.append(day)
        return list(self.events)


class FailingSource:
    name = "google"

    async def fetch(self, day: date) -> list:
        raise ConnectionError("DNS lookup failed")


def _outlook_raw(subject: str, hour: int, **extra: object) -> OutlookRawEvent:
    payload: dict[str, object] = {
        "id": f"o-{subject}",
        "subject": subject,
        "start": f"2025-10-06T{hour:02d}:00:00.0000000",
        "end": f"2025-10-06T{hour + 1:02d}:00:00.0000000",
        "timeZone": "UTC",
    }
    payload.update(extra)
    return OutlookRawEvent.model_validate(payload)


def _google_raw(summary: str, hour: int, **extra: object) -> GoogleRawEvent:
    payload: dict[str, object] = {
        "id": f"g-{summary}",
        "summary": summary,
        "start": {"dateTime": f"2025-10-06T{hour:02d}:00:00Z"},
        "end": {"dateTime": f"2025-10-06T{hour + 1:02d}:00:00Z"},
    }
    payload.update(extra)
    return GoogleRawEvent.model_validate(payload)


def _reconciler(store: InMemoryStore, sources: list, oracle=None, **kwargs) -> Reconciler:
    return Reconciler(
        sources=sources,
        enrichment=EnrichmentStage(store, oracle=oracle),
        writer=PersistenceWriter(store, clock=lambda: NOW),
        timezone=NEW_YORK,
        clock=lambda: NOW,
        **kwargs,
    )


class TestExcludeTitles:
    def test_case_insensitive_and_trimmed(self, make_event) -> None:
        events = [make_event(title="Busy"), make_event(title=" busy ", hour=9), make_event()]

        kept, dropped = exclude_titles(events, ["BUSY"])

        assert [e.title for e in kept] == ["Project sync"]
        assert dropped == 2

    def test_empty_list_keeps_all(self, make_event) -> None:
        kept, dropped = exclude_titles([make_event()], [])

        assert len(kept) == 1
        assert dropped == 0


class TestTargetDates:
    def test_today_in_reference_timezone(self, store: InMemoryStore) -> None:
        # 02:00 UTC on the 7th is still the 6th in New York.
        reconciler = Reconciler(
            sources=[],
            enrichment=EnrichmentStage(store),
            writer=PersistenceWriter(store),
            timezone=NEW_YORK,
            days_ahead=3,
            clock=lambda: datetime(2025, 10, 7, 2, 0, tzinfo=UTC),
        )

        assert reconciler.target_dates() == [
            date(2025, 10, 6),
            date(2025, 10, 7),
            date(2025, 10, 8),
        ]


class TestReconcileDate:
    """Tests for Reconciler.reconcile_date."""

    async def test_end_to_end(self, store: InMemoryStore) -> None:
        outlook = StaticSource(
            "outlook",
            [
                _outlook_raw("Design review", 14, iCalUId="shared-uid",
                             requiredAttendees="ann@client.com"),
                _outlook_raw("Busy", 16),
                _outlook_raw("No Title", 17),
            ],
        )
        google = StaticSource(
            "google",
            [
                _google_raw("Design review", 14, iCalUID="shared-uid"),
                _google_raw("Gym", 22),
            ],
        )

        outcome = await _reconciler(store, [outlook, google]).reconcile_date(DAY)

        assert outcome.fetched == {"outlook": 3, "google": 2}
        assert outcome.rejected == 1
        assert outcome.duplicates == 1
        assert outcome.excluded == 1
        assert outcome.write.created == 2
        assert outcome.error is None

        schedule = await ConsistencyReader(store).read_date(DAY)
        assert [(e.title, e.source_category, e.context) for e in schedule.events] == [
            ("Design review", "Outlook", "Work"),
            ("Gym", "Google", "Life"),
        ]

    async def test_failing_source_isolated(self, store: InMemoryStore) -> None:
        outlook = StaticSource("outlook", [_outlook_raw("Standup", 13)])

        outcome = await _reconciler(store, [outlook, FailingSource()]).reconcile_date(DAY)

        assert outcome.fetched == {"outlook": 1, "google": 0}
        assert outcome.write.created == 1
        assert outcome.error is None

    async def test_events_on_other_dates_filtered(self, store: InMemoryStore) -> None:
        # 23:00 UTC on the 5th is 19:00 on the 5th in New York.
        early = OutlookRawEvent.model_validate(
            {
                "id": "o-yesterday",
                "subject": "Yesterday",
                "start": "2025-10-05T23:00:00.0000000",
                "end": "2025-10-05T23:30:00.0000000",
                "timeZone": "UTC",
            }
        )
        source = StaticSource("outlook", [early, _outlook_raw("Today", 15)])

        outcome = await _reconciler(store, [source]).reconcile_date(DAY)

        assert outcome.write.created == 1

    async def test_persist_failure_recorded(self, store: InMemoryStore) -> None:
        writer = AsyncMock(spec=PersistenceWriter)
        writer.write_date.side_effect = RuntimeError("database is locked")
        reconciler = Reconciler(
            sources=[StaticSource("outlook", [_outlook_raw("Standup", 13)])],
            enrichment=EnrichmentStage(store),
            writer=writer,
            timezone=NEW_YORK,
            clock=lambda: NOW,
        )

        outcome = await reconciler.reconcile_date(DAY)

        assert outcome.error == "database is locked"

    async def test_custom_exclusion_list(self, store: InMemoryStore) -> None:
        source = StaticSource("outlook", [_outlook_raw("Peloton", 11), _outlook_raw("Sync", 13)])

        outcome = await _reconciler(
            store, [source], excluded_titles=("Peloton",)
        ).reconcile_date(DAY)

        assert outcome.excluded == 1
        assert outcome.write.created == 1


class TestRunPass:
    async def test_all_target_dates_in_order(self, store: InMemoryStore) -> None:
        source = StaticSource("outlook", [])

        outcomes = await _reconciler(store, [source], days_ahead=2).run_pass()

        assert [o.day for o in outcomes] == [date(2025, 10, 6), date(2025, 10, 7)]
        assert source.days == [date(2025, 10, 6), date(2025, 10, 7)]

    async def test_repeat_pass_is_idempotent(self, store: InMemoryStore) -> None:
        oracle = AsyncMock()
        oracle.classify.return_value = None
        oracle.summarize.return_value = "Daily standup"
        source = StaticSource("outlook", [_outlook_raw("Standup", 13)])
        reconciler = _reconciler(store, [source], oracle=oracle, days_ahead=1)

        await reconciler.run_pass()
        writes_after_first = store.writes
        outcomes = await reconciler.run_pass()

        assert outcomes[0].write.unchanged == 1
        assert len(store.events) == 1
        # Only the index merge writes; the event itself is untouched.
        assert store.writes == writes_after_first + 1

    async def test_skipped_trigger_writes_nothing(self, store: InMemoryStore) -> None:
        scheduler = ReconciliationScheduler(
            _reconciler(store, [StaticSource("outlook", [_outlook_raw("Standup", 13)])]),
            timezone=NEW_YORK,
        )

        async with scheduler.gate.try_acquire():
            result = await scheduler.trigger()

        assert result.status == "skipped"
        assert store.writes == 0
