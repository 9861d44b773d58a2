"""Durable storage for reconciled calendar state."""

from __future__ import annotations

from day_brief.storage.base import EventStore
from day_brief.storage.memory import InMemoryStore
from day_brief.storage.sqlite import SqliteStore

__all__ = [
    "EventStore",
    "InMemoryStore",
    "SqliteStore",
]
