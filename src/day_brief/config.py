"""Configuration loading for day-brief.

Reads settings from environment variables (with .env support via python-dotenv)
and validates every value before the scheduler or reader is built.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter
from dotenv import load_dotenv


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        db_path: Path of the SQLite database holding reconciled state.
        timezone: IANA timezone that defines calendar dates
            (default ``"America/New_York"``).
        schedule_cron: Cron expression for scheduled reconciliation passes.
        days_ahead: Number of dates reconciled per pass, starting today.
        failure_threshold: Maximum tolerated fraction of failed event
            writes before a date's index update is aborted.
        lookup_monthly_budget: Attendee lookups allowed per calendar month.
        internal_domains: Email domains never sent to attendee lookup.
        owner_emails: The calendar owner's own addresses (never looked up).
        excluded_titles: Event titles dropped after deduplication.
        fuzzy_dedup_threshold: Title similarity (0-100) at which events sharing
            a start instant count as duplicates; ``None`` disables fuzzy
            matching.
        gemini_api_key: Enables the Gemini enrichment oracle when set.
        google_credentials_path: OAuth client secrets for Google Calendar.
        google_token_path: Cached Google OAuth token.
        google_calendar_ids: Google calendars merged as one source.
        outlook_export_url: URL of the JSON Outlook calendar export.
        projects_path: JSON catalogue of projects events can be linked to.
        pdl_api_key: Enables People Data Labs attendee lookups when set.
        log_level: Logging level (default ``"INFO"``).
    """

    db_path: Path = Path("day_brief.db")
    timezone: str = "America/New_York"
    schedule_cron: str = "0 6,12,18 * * *"
    days_ahead: int = 2
    failure_threshold: float = 0.3
    lookup_monthly_budget: int = 100
    internal_domains: tuple[str, ...] = ()
    owner_emails: tuple[str, ...] = ()
    excluded_titles: tuple[str, ...] = ("Busy",)
    fuzzy_dedup_threshold: float | None = None
    gemini_api_key: str | None = None
    google_credentials_path: Path = Path("credentials.json")
    google_token_path: Path = Path("token.json")
    google_calendar_ids: tuple[str, ...] = ("primary",)
    outlook_export_url: str | None = None
    projects_path: Path = Path("projects.json")
    pdl_api_key: str | None = None
    log_level: str = "INFO"

    @property
    def tz(self) -> ZoneInfo:
        """The reference timezone as a :class:`~zoneinfo.ZoneInfo`."""
        return ZoneInfo(self.timezone)

    def __repr__(self) -> str:
        return (
            f"Settings(db_path={str(self.db_path)!r}, "
            f"timezone={self.timezone!r}, "
            f"schedule_cron={self.schedule_cron!r}, "
            f"days_ahead={self.days_ahead!r}, "
            f"failure_threshold={self.failure_threshold!r}, "
            f"gemini_api_key={'***' if self.gemini_api_key else None}, "
            f"outlook_export_url={'***' if self.outlook_export_url else None}, "
            f"pdl_api_key={'***' if self.pdl_api_key else None}, "
            f"log_level={self.log_level!r})"
        )


def _split_list(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Calls :func:`dotenv.load_dotenv` so a ``.env`` file in the project root
    is picked up automatically.  Every variable is optional; unset or
    whitespace-only values fall back to the dataclass defaults.

    Returns:
        A validated :class:`Settings` instance.

    Raises:
        ConfigError: If any variable holds an invalid value.  The error
            message names **all** invalid variables.
    """
    load_dotenv()

    values: dict[str, object] = {}
    invalid: list[str] = []

    def env(name: str) -> str:
        return os.environ.get(name, "").strip()

    if raw := env("DAY_BRIEF_DB_PATH"):
        values["db_path"] = Path(raw)

    if raw := env("TIMEZONE"):
        try:
            ZoneInfo(raw)
        except (ZoneInfoNotFoundError, ValueError):
            invalid.append(f"TIMEZONE={raw!r}")
        else:
            values["timezone"] = raw

    if raw := env("SCHEDULE_CRON"):
        if croniter.is_valid(raw):
            values["schedule_cron"] = raw
        else:
            invalid.append(f"SCHEDULE_CRON={raw!r}")

    if raw := env("DAYS_AHEAD"):
        try:
            days = int(raw)
        except ValueError:
            days = 0
        if days < 1:
            invalid.append(f"DAYS_AHEAD={raw!r}")
        else:
            values["days_ahead"] = days

    if raw := env("FAILURE_THRESHOLD"):
        try:
            threshold = float(raw)
        except ValueError:
            threshold = -1.0
        if not 0.0 <= threshold <= 1.0:
            invalid.append(f"FAILURE_THRESHOLD={raw!r}")
        else:
            values["failure_threshold"] = threshold

    if raw := env("LOOKUP_MONTHLY_BUDGET"):
        try:
            budget = int(raw)
        except ValueError:
            budget = -1
        if budget < 0:
            invalid.append(f"LOOKUP_MONTHLY_BUDGET={raw!r}")
        else:
            values["lookup_monthly_budget"] = budget

    if raw := env("FUZZY_DEDUP_THRESHOLD"):
        try:
            similarity = float(raw)
        except ValueError:
            similarity = -1.0
        if not 0.0 <= similarity <= 100.0:
            invalid.append(f"FUZZY_DEDUP_THRESHOLD={raw!r}")
        else:
            values["fuzzy_dedup_threshold"] = similarity

    if raw := env("INTERNAL_DOMAINS"):
        values["internal_domains"] = tuple(d.lower() for d in _split_list(raw))
    if raw := env("OWNER_EMAILS"):
        values["owner_emails"] = tuple(e.lower() for e in _split_list(raw))
    if raw := env("EXCLUDED_TITLES"):
        values["excluded_titles"] = _split_list(raw)
    if raw := env("GOOGLE_CALENDAR_IDS"):
        values["google_calendar_ids"] = _split_list(raw)

    if raw := env("GEMINI_API_KEY"):
        values["gemini_api_key"] = raw
    if raw := env("OUTLOOK_EXPORT_URL"):
        values["outlook_export_url"] = raw
    if raw := env("GOOGLE_CREDENTIALS_PATH"):
        values["google_credentials_path"] = Path(raw)
    if raw := env("GOOGLE_TOKEN_PATH"):
        values["google_token_path"] = Path(raw)
    if raw := env("PROJECTS_PATH"):
        values["projects_path"] = Path(raw)
    if raw := env("PDL_API_KEY"):
        values["pdl_api_key"] = raw
    if raw := env("LOG_LEVEL"):
        values["log_level"] = raw.upper()

    if invalid:
        names = ", ".join(invalid)
        raise ConfigError(f"Invalid environment variables: {names}")

    return Settings(**values)  # type: ignore[arg-type]
