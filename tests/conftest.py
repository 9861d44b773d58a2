"""Shared fixtures for day-brief tests."""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator
from datetime import UTC, datetime
from typing import Any

import pytest

from day_brief.models.events import Attendee, CanonicalEvent, SourceSystem
from day_brief.storage.memory import InMemoryStore

_ENV_KEYS = (
    "DAY_BRIEF_DB_PATH",
    "TIMEZONE",
    "SCHEDULE_CRON",
    "DAYS_AHEAD",
    "FAILURE_THRESHOLD",
    "LOOKUP_MONTHLY_BUDGET",
    "INTERNAL_DOMAINS",
    "OWNER_EMAILS",
    "EXCLUDED_TITLES",
    "FUZZY_DEDUP_THRESHOLD",
    "GEMINI_API_KEY",
    "GOOGLE_CREDENTIALS_PATH",
    "GOOGLE_TOKEN_PATH",
    "GOOGLE_CALENDAR_IDS",
    "OUTLOOK_EXPORT_URL",
    "PROJECTS_PATH",
    "PDL_API_KEY",
    "LOG_LEVEL",
)


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove all day-brief environment variables.

    Patches ``load_dotenv`` so a real ``.env`` file cannot re-inject values
    that the test explicitly removed.
    """
    monkeypatch.setattr("day_brief.config.load_dotenv", lambda *_a, **_kw: None)
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def monkeypatch_env(clean_env: None, monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set a representative, valid environment.

    Returns the dict of variables so tests can inspect or override values.
    """
    env_vars = {
        "DAY_BRIEF_DB_PATH": "/tmp/day-brief-test.db",
        "TIMEZONE": "America/New_York",
        "GEMINI_API_KEY": "test-gemini-key-12345",
        "OUTLOOK_EXPORT_URL": "https://example.com/outlook.json",
        "INTERNAL_DOMAINS": "example.com, Corp.Example.com",
        "OWNER_EMAILS": "Owner@Example.com",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


@pytest.fixture(autouse=True)
def _reset_root_logger() -> Generator[None, None, None]:
    """Reset the root logger after each test to prevent handler leaks."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)


@pytest.fixture()
def store() -> InMemoryStore:
    """An empty in-memory store."""
    return InMemoryStore()


@pytest.fixture()
def make_event() -> Callable[..., CanonicalEvent]:
    """Factory for canonical events with sensible defaults.

    ``make_event(title="Standup", hour=9)`` builds a one-hour Outlook event
    on 2025-10-06 starting at *hour* UTC.
    """

    def _make(
        title: str = "Project sync",
        hour: int = 14,
        source: SourceSystem = SourceSystem.OUTLOOK,
        source_id: str | None = None,
        attendees: list[str] | None = None,
        **overrides: Any,
    ) -> CanonicalEvent:
        start = datetime(2025, 10, 6, hour, 0, tzinfo=UTC)
        fields: dict[str, Any] = {
            "source_id": source_id or f"{source.value}-{title.lower().replace(' ', '-')}-{hour}",
            "source_system": source,
            "title": title,
            "start": start,
            "end": start.replace(hour=hour + 1),
            "attendees": [Attendee(email=email) for email in attendees or []],
        }
        fields.update(overrides)
        return CanonicalEvent(**fields)

    return _make
