"""SQLite-backed :class:`~day_brief.storage.base.EventStore`.

One row per canonical event (unique on ``source_id, source_system``), one
or more rows per day index (the reader collapses duplicates), one row per
override.  Blocking :mod:`sqlite3` calls run in a worker thread via
:func:`asyncio.to_thread`; a lock serializes them on the shared
connection.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
import time
import uuid
from collections.abc import Callable, Collection, Iterable
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, TypeVar

from day_brief.exceptions import DuplicateIndexError, StorageError
from day_brief.models.events import (
    Attendee,
    CanonicalEvent,
    ContactRecord,
    DayIndex,
    Override,
    SourceSystem,
)

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_SQLITE_CONNECT_TIMEOUT_SECONDS = 30
_DEFAULT_SQLITE_BUSY_TIMEOUT_MS = 30_000
_DEFAULT_DB_RETRIES = 5
_DEFAULT_DB_BASE_SLEEP_MS = 50
_LOCK_ERROR_MARKERS = ("locked", "busy")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    source_id TEXT NOT NULL,
    source_system TEXT NOT NULL CHECK (source_system IN ('google', 'outlook')),
    ical_uid TEXT,
    title TEXT NOT NULL CHECK (trim(title) <> '' AND trim(title) <> 'No Title'),
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    is_all_day INTEGER NOT NULL DEFAULT 0,
    location TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    attendees TEXT NOT NULL DEFAULT '[]',
    project_ref TEXT,
    category TEXT CHECK (category IN ('Work', 'Life')),
    summary_text TEXT,
    last_written_at TEXT,
    UNIQUE (source_id, source_system)
);

CREATE TABLE IF NOT EXISTS day_index (
    row_id INTEGER PRIMARY KEY AUTOINCREMENT,
    date TEXT NOT NULL,
    event_ids TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL,
    last_merged_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_day_index_date ON day_index (date);

CREATE TABLE IF NOT EXISTS event_overrides (
    event_id TEXT PRIMARY KEY,
    title TEXT,
    project_ref TEXT,
    context TEXT CHECK (context IN ('Work', 'Life')),
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS contacts (
    email TEXT PRIMARY KEY,
    name TEXT,
    company TEXT,
    job_title TEXT,
    seniority TEXT,
    linkedin_url TEXT,
    status TEXT NOT NULL,
    looked_up_at TEXT
);

CREATE TABLE IF NOT EXISTS lookup_usage (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT NOT NULL,
    month TEXT NOT NULL,
    success INTEGER NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_lookup_usage_month ON lookup_usage (month);
"""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _is_lock_or_busy_error(error: sqlite3.OperationalError) -> bool:
    message = str(error).strip().lower()
    return any(marker in message for marker in _LOCK_ERROR_MARKERS)


def with_db_retry(
    fn: Callable[[], _T],
    *,
    retries: int = _DEFAULT_DB_RETRIES,
    base_sleep_ms: int = _DEFAULT_DB_BASE_SLEEP_MS,
) -> _T:
    """Call *fn*, retrying while SQLite reports the database locked/busy."""
    for attempt in range(retries + 1):
        try:
            return fn()
        except sqlite3.OperationalError as error:
            if attempt >= retries or not _is_lock_or_busy_error(error):
                raise
            time.sleep((base_sleep_ms * (attempt + 1)) / 1000.0)
    raise RuntimeError("unreachable")  # pragma: no cover


def connect_db(path: Path) -> sqlite3.Connection:
    """Open *path* with the pragmas the store relies on."""
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        path,
        timeout=_SQLITE_CONNECT_TIMEOUT_SECONDS,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute(f"PRAGMA busy_timeout = {_DEFAULT_SQLITE_BUSY_TIMEOUT_MS}")
    return conn


class SqliteStore:
    """Durable store on a single SQLite file.

    Use as an async context manager, or call :meth:`open` / :meth:`close`.

    Args:
        path: Database file (created with its parent directory if missing).
        clock: Returns "now"; override in tests.
    """

    def __init__(self, path: Path | str, clock: Callable[[], datetime] = _utc_now) -> None:
        self._path = Path(path)
        self._clock = clock
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def open(self) -> SqliteStore:
        if self._conn is None:
            self._conn = connect_db(self._path)
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
            logger.info("Opened SQLite store at %s", self._path)
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    async def __aenter__(self) -> SqliteStore:
        return await asyncio.to_thread(self.open)

    async def __aexit__(self, *exc_info: object) -> None:
        await asyncio.to_thread(self.close)

    async def _run(self, fn: Callable[[sqlite3.Connection], _T]) -> _T:
        return await asyncio.to_thread(self._call, fn)

    def _call(self, fn: Callable[[sqlite3.Connection], _T]) -> _T:
        if self._conn is None:
            raise StorageError("SqliteStore is not open")
        conn = self._conn

        def attempt() -> _T:
            try:
                result = fn(conn)
                conn.commit()
                return result
            except Exception:
                conn.rollback()
                raise

        with self._lock:
            try:
                return with_db_retry(attempt)
            except sqlite3.Error as exc:
                raise StorageError(f"SQLite error: {exc}") from exc

    # -- canonical events ---------------------------------------------------

    async def find_event(
        self, source_id: str, source_system: SourceSystem
    ) -> CanonicalEvent | None:
        def query(conn: sqlite3.Connection) -> CanonicalEvent | None:
            row = conn.execute(
                "SELECT * FROM events WHERE source_id = ? AND source_system = ?",
                (source_id, source_system.value),
            ).fetchone()
            return _event_from_row(row) if row else None

        return await self._run(query)

    async def insert_event(self, event: CanonicalEvent) -> str:
        event_id = uuid.uuid4().hex

        def insert(conn: sqlite3.Connection) -> str:
            params = _event_params(event)
            params["id"] = event_id
            columns = ", ".join(params)
            placeholders = ", ".join(f":{name}" for name in params)
            conn.execute(f"INSERT INTO events ({columns}) VALUES ({placeholders})", params)
            return event_id

        return await self._run(insert)

    async def update_event(self, event_id: str, event: CanonicalEvent) -> None:
        def update(conn: sqlite3.Connection) -> None:
            params = _event_params(event)
            assignments = ", ".join(f"{name} = :{name}" for name in params)
            params["id"] = event_id
            cursor = conn.execute(f"UPDATE events SET {assignments} WHERE id = :id", params)
            if cursor.rowcount == 0:
                raise StorageError(f"Event {event_id} not found for update")

        await self._run(update)

    async def get_events(self, event_ids: Collection[str]) -> list[CanonicalEvent]:
        ids = list(event_ids)
        if not ids:
            return []

        def query(conn: sqlite3.Connection) -> list[CanonicalEvent]:
            placeholders = ", ".join("?" for _ in ids)
            rows = conn.execute(
                f"SELECT * FROM events WHERE id IN ({placeholders}) ORDER BY start_time",
                ids,
            ).fetchall()
            return [_event_from_row(row) for row in rows]

        return await self._run(query)

    # -- day index ----------------------------------------------------------

    async def get_day_index(self, day: date) -> DayIndex | None:
        rows = await self.list_day_index_rows(day)
        if len(rows) > 1:
            raise DuplicateIndexError(day, len(rows))
        return rows[0] if rows else None

    async def list_day_index_rows(self, day: date) -> list[DayIndex]:
        def query(conn: sqlite3.Connection) -> list[DayIndex]:
            rows = conn.execute(
                "SELECT * FROM day_index WHERE date = ? ORDER BY created_at DESC, row_id DESC",
                (day.isoformat(),),
            ).fetchall()
            return [_index_from_row(row) for row in rows]

        return await self._run(query)

    async def delete_day_index_rows(self, row_ids: Iterable[int]) -> None:
        ids = list(row_ids)
        if not ids:
            return

        def delete(conn: sqlite3.Connection) -> None:
            placeholders = ", ".join("?" for _ in ids)
            conn.execute(f"DELETE FROM day_index WHERE row_id IN ({placeholders})", ids)

        await self._run(delete)

    async def merge_day_index(self, day: date, event_ids: Collection[str]) -> DayIndex:
        now = _iso(self._clock())
        new_ids = set(event_ids)

        def merge(conn: sqlite3.Connection) -> DayIndex:
            # Write lock first; no other connection can merge between read and write.
            conn.execute("BEGIN IMMEDIATE")
            rows = conn.execute(
                "SELECT event_ids FROM day_index WHERE date = ?", (day.isoformat(),)
            ).fetchall()
            merged = set(new_ids)
            for row in rows:
                merged.update(json.loads(row["event_ids"]))
            payload = json.dumps(sorted(merged))
            if rows:
                conn.execute(
                    "UPDATE day_index SET event_ids = ?, last_merged_at = ? WHERE date = ?",
                    (payload, now, day.isoformat()),
                )
            else:
                conn.execute(
                    "INSERT INTO day_index (date, event_ids, created_at, last_merged_at) "
                    "VALUES (?, ?, ?, ?)",
                    (day.isoformat(), payload, now, now),
                )
            row = conn.execute(
                "SELECT * FROM day_index WHERE date = ? ORDER BY created_at DESC, row_id DESC",
                (day.isoformat(),),
            ).fetchone()
            return _index_from_row(row)

        return await self._run(merge)

    async def add_day_index_row(
        self,
        day: date,
        event_ids: Collection[str],
        created_at: datetime | None = None,
    ) -> DayIndex:
        """Insert a new day-index row unconditionally (no uniqueness check)."""
        created = _iso(created_at or self._clock())

        def insert(conn: sqlite3.Connection) -> DayIndex:
            cursor = conn.execute(
                "INSERT INTO day_index (date, event_ids, created_at, last_merged_at) "
                "VALUES (?, ?, ?, ?)",
                (day.isoformat(), json.dumps(sorted(event_ids)), created, created),
            )
            row = conn.execute(
                "SELECT * FROM day_index WHERE row_id = ?", (cursor.lastrowid,)
            ).fetchone()
            return _index_from_row(row)

        return await self._run(insert)

    # -- overrides ------------------------------------------------------------

    async def get_overrides(self, event_ids: Collection[str]) -> list[Override]:
        ids = list(event_ids)
        if not ids:
            return []

        def query(conn: sqlite3.Connection) -> list[Override]:
            placeholders = ", ".join("?" for _ in ids)
            rows = conn.execute(
                f"SELECT * FROM event_overrides WHERE event_id IN ({placeholders})", ids
            ).fetchall()
            return [
                Override(
                    event_id=row["event_id"],
                    title=row["title"],
                    project_ref=row["project_ref"],
                    context=row["context"],
                    updated_at=_from_iso(row["updated_at"]),
                )
                for row in rows
            ]

        return await self._run(query)

    async def put_override(self, override: Override) -> None:
        now = _iso(self._clock())

        def upsert(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT INTO event_overrides (event_id, title, project_ref, context, updated_at) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT (event_id) DO UPDATE SET title = excluded.title, "
                "project_ref = excluded.project_ref, context = excluded.context, "
                "updated_at = excluded.updated_at",
                (override.event_id, override.title, override.project_ref, override.context, now),
            )

        await self._run(upsert)

    # -- attendee lookup cache --------------------------------------------------

    async def get_contact(self, email: str) -> ContactRecord | None:
        def query(conn: sqlite3.Connection) -> ContactRecord | None:
            row = conn.execute(
                "SELECT * FROM contacts WHERE email = ?", (email.lower(),)
            ).fetchone()
            if row is None:
                return None
            data: dict[str, Any] = dict(row)
            data["looked_up_at"] = _from_iso(data["looked_up_at"])
            return ContactRecord.model_validate(data)

        return await self._run(query)

    async def save_contact(self, record: ContactRecord) -> None:
        data = record.model_dump()
        data["email"] = record.email.lower()
        data["looked_up_at"] = _iso(record.looked_up_at)

        def upsert(conn: sqlite3.Connection) -> None:
            columns = ", ".join(data)
            placeholders = ", ".join(f":{name}" for name in data)
            conn.execute(
                f"INSERT OR REPLACE INTO contacts ({columns}) VALUES ({placeholders})", data
            )

        await self._run(upsert)

    async def lookup_usage(self, month: str) -> int:
        def query(conn: sqlite3.Connection) -> int:
            row = conn.execute(
                "SELECT COUNT(*) FROM lookup_usage WHERE month = ?", (month,)
            ).fetchone()
            return int(row[0])

        return await self._run(query)

    async def record_lookup(self, email: str, month: str, success: bool) -> None:
        now = _iso(self._clock())

        def insert(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT INTO lookup_usage (email, month, success, created_at) "
                "VALUES (?, ?, ?, ?)",
                (email.lower(), month, int(success), now),
            )

        await self._run(insert)


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------


def _event_params(event: CanonicalEvent) -> dict[str, Any]:
    return {
        "source_id": event.source_id,
        "source_system": event.source_system.value,
        "ical_uid": event.ical_uid,
        "title": event.title,
        "start_time": _iso(event.start),
        "end_time": _iso(event.end),
        "is_all_day": int(event.is_all_day),
        "location": event.location,
        "description": event.description,
        "attendees": json.dumps([a.model_dump(exclude_none=True) for a in event.attendees]),
        "project_ref": event.project_ref,
        "category": event.category,
        "summary_text": event.summary_text,
        "last_written_at": _iso(event.last_written_at),
    }


def _event_from_row(row: sqlite3.Row) -> CanonicalEvent:
    return CanonicalEvent(
        id=row["id"],
        source_id=row["source_id"],
        source_system=SourceSystem(row["source_system"]),
        ical_uid=row["ical_uid"],
        title=row["title"],
        start=datetime.fromisoformat(row["start_time"]),
        end=datetime.fromisoformat(row["end_time"]),
        is_all_day=bool(row["is_all_day"]),
        location=row["location"],
        description=row["description"],
        attendees=[Attendee.model_validate(a) for a in json.loads(row["attendees"])],
        project_ref=row["project_ref"],
        category=row["category"],
        summary_text=row["summary_text"],
        last_written_at=_from_iso(row["last_written_at"]),
    )


def _index_from_row(row: sqlite3.Row) -> DayIndex:
    return DayIndex(
        row_id=row["row_id"],
        date=date.fromisoformat(row["date"]),
        event_ids=frozenset(json.loads(row["event_ids"])),
        created_at=_from_iso(row["created_at"]),
        last_merged_at=_from_iso(row["last_merged_at"]),
    )
