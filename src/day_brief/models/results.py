"""Result records for reconciliation passes.

- :class:`WriteResult` -- outcome of the persistence writer for one date,
  including the failure rate that drives the validation gate.
- :class:`DateOutcome` -- everything that happened to one date in a pass.
- :class:`ReconcileResult` -- what a scheduler trigger returns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal

IndexStatus = Literal["merged", "aborted", "empty"]
RunStatus = Literal["success", "failed", "skipped"]


@dataclass
class WriteResult:
    """Aggregated result of writing one date's events.

    Attributes:
        created: Events inserted as new rows.
        updated: Existing rows rewritten because the event changed or was
            missing its summary.
        unchanged: Existing rows left untouched.
        failed: Events whose lookup or write raised.
        written_ids: Canonical ids this run contributes to the day index
            (created, updated and unchanged events).
        failures: One dict per failed event with ``"event"`` and
            ``"error"`` keys.
        index_status: ``"merged"`` when the day index was updated,
            ``"aborted"`` when the validation gate blocked it, ``"empty"``
            when there was nothing to write.
        index_size: Size of the day index after the merge (``0`` unless
            merged).
    """

    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    written_ids: list[str] = field(default_factory=list)
    failures: list[dict] = field(default_factory=list)
    index_status: IndexStatus = "empty"
    index_size: int = 0

    @property
    def total(self) -> int:
        """Number of candidate events handed to the writer."""
        return self.created + self.updated + self.unchanged + self.failed

    @property
    def failure_rate(self) -> float:
        """Fraction of candidates that failed (``0.0`` with no candidates)."""
        if self.total == 0:
            return 0.0
        return self.failed / self.total


@dataclass
class DateOutcome:
    """What one reconciliation pass did for one date.

    Attributes:
        day: The calendar date.
        fetched: Raw event count per source name.
        rejected: Events dropped by the normalizer.
        duplicates: Events collapsed by the deduplicator.
        excluded: Events dropped by the title exclusion list.
        write: The writer's result for the date.
        error: Why the date could not be persisted, if it failed.
    """

    day: date
    fetched: dict[str, int] = field(default_factory=dict)
    rejected: int = 0
    duplicates: int = 0
    excluded: int = 0
    write: WriteResult = field(default_factory=WriteResult)
    error: str | None = None

    @property
    def processed(self) -> int:
        """Events that reached the writer for this date."""
        return self.write.total


@dataclass
class ReconcileResult:
    """Outcome of one scheduler trigger.

    Attributes:
        status: ``"success"``, ``"failed"`` or ``"skipped"`` (another run
            was already in progress).
        dates: Per-date outcomes, in processing order.
        error: Error text when ``status == "failed"``.
        duration_seconds: Wall-clock duration of the pass.
    """

    status: RunStatus
    dates: list[DateOutcome] = field(default_factory=list)
    error: str | None = None
    duration_seconds: float = 0.0

    @property
    def processed(self) -> int:
        """Total events that reached the writer across all dates."""
        return sum(outcome.processed for outcome in self.dates)

    @property
    def success(self) -> bool:
        return self.status == "success"

    @classmethod
    def skipped(cls) -> ReconcileResult:
        return cls(status="skipped")
