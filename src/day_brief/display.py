"""Console output for reconciliation passes and stored schedules.

:func:`format_reconcile_result` renders what a pass did per date;
:func:`format_schedules` renders what the reader serves.  The ``print_*``
helpers write straight to stdout.
"""

from __future__ import annotations

import sys
from datetime import datetime
from zoneinfo import ZoneInfo

from day_brief.models.results import DateOutcome, ReconcileResult
from day_brief.models.view import DaySchedule, EventTime, EventView, SourceTotals

_BANNER_WIDTH = 60
_SEPARATOR = "=" * _BANNER_WIDTH


def format_reconcile_result(result: ReconcileResult) -> str:
    """Render a :class:`ReconcileResult` as a per-date report."""
    lines: list[str] = [_SEPARATOR, "  DAY-BRIEF RECONCILIATION", _SEPARATOR]

    if result.status == "skipped":
        lines.append("")
        lines.append("  Skipped: another reconciliation is already running.")
        lines.append(_SEPARATOR)
        return "\n".join(lines)

    for outcome in result.dates:
        _append_outcome(lines, outcome)

    lines.append("")
    lines.append("--- SUMMARY ---")
    lines.append(f"  Status: {result.status}")
    lines.append(f"  Events processed: {result.processed}")
    if result.error:
        lines.append(f"  Error: {result.error}")
    lines.append(f"  Duration: {result.duration_seconds:.1f}s")
    lines.append(_SEPARATOR)
    return "\n".join(lines)


def format_schedules(schedules: list[DaySchedule], timezone: ZoneInfo) -> str:
    """Render the reader's schedules, times shown in *timezone*."""
    lines: list[str] = [_SEPARATOR, "  DAY-BRIEF SCHEDULE", _SEPARATOR]

    for schedule in schedules:
        lines.append("")
        lines.append(f"--- {schedule.date.strftime('%A %Y-%m-%d')} ---")
        if schedule.is_empty:
            lines.append("  No events.")
            continue
        for event in schedule.events:
            _append_event(lines, event, timezone)

    totals = SourceTotals.from_schedules(schedules)
    lines.append("")
    lines.append(
        f"  Totals: {totals.total} event(s) "
        f"({totals.outlook} Outlook, {totals.google} Google)"
    )
    lines.append(_SEPARATOR)
    return "\n".join(lines)


def print_reconcile_result(result: ReconcileResult) -> None:
    sys.stdout.write(format_reconcile_result(result) + "\n")


def print_schedules(schedules: list[DaySchedule], timezone: ZoneInfo) -> None:
    sys.stdout.write(format_schedules(schedules, timezone) + "\n")


# ---------------------------------------------------------------------------
# Internal formatters
# ---------------------------------------------------------------------------


def _append_outcome(lines: list[str], outcome: DateOutcome) -> None:
    write = outcome.write
    lines.append("")
    lines.append(f"--- {outcome.day.isoformat()} ---")
    fetched = ", ".join(f"{name} {count}" for name, count in outcome.fetched.items())
    lines.append(f"  Fetched: {fetched or 'no sources'}")
    lines.append(
        f"  Dropped: {outcome.rejected} invalid, {outcome.duplicates} duplicate, "
        f"{outcome.excluded} excluded"
    )
    lines.append(
        f"  Written: {write.created} created, {write.updated} updated, "
        f"{write.unchanged} unchanged, {write.failed} failed"
    )
    if write.index_status == "aborted":
        lines.append(
            f"  [!] Day index NOT updated: {write.failure_rate:.0%} of writes failed"
        )
    elif write.index_status == "merged":
        lines.append(f"  Day index: {write.index_size} event(s)")
    for failure in write.failures:
        lines.append(f"  [FAIL] {failure['event']}: {failure['error']}")
    if outcome.error:
        lines.append(f"  [ERROR] {outcome.error}")


def _append_event(lines: list[str], event: EventView, timezone: ZoneInfo) -> None:
    marker = " *" if event.has_override else ""
    tags = ", ".join(tag for tag in (event.source_category, event.context) if tag)
    lines.append(f"  {_format_time(event.start, timezone)}  {event.title}{marker} [{tags}]")
    if event.location:
        lines.append(f"      Where: {event.location}")
    if event.attendees:
        names = ", ".join(a.name or a.email for a in event.attendees)
        lines.append(f"      Who: {names}")
    if event.project_ref:
        lines.append(f"      Project: {event.project_ref}")
    if event.summary_text:
        lines.append(f"      Brief: {event.summary_text}")
    lines.append(f"      Id: {event.id}")


def _format_time(value: EventTime, timezone: ZoneInfo) -> str:
    if value.date_time is None:
        return "all day"
    instant = datetime.fromisoformat(value.date_time.replace("Z", "+00:00"))
    return instant.astimezone(timezone).strftime("%I:%M %p").lstrip("0").rjust(8)
