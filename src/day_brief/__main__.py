"""Entry point for ``python -m day_brief``.

Subcommands:
    run       -- Run one reconciliation pass now and print what it did.
    show      -- Print the stored schedule (today onwards).
    serve     -- Run reconciliation passes on the configured cron schedule.
    override  -- Set a manual title/project/context correction for an event.

Exit codes:
    0 -- Command completed (a skipped pass also counts).
    1 -- An error occurred (config error, failed pass, storage error).
    2 -- Argument parsing error (handled by argparse).
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from datetime import date, datetime

from day_brief.app import build_scheduler, build_sources
from day_brief.config import ConfigError, Settings, load_settings
from day_brief.display import print_reconcile_result, print_schedules
from day_brief.exceptions import DayBriefError
from day_brief.log import setup_logging
from day_brief.models.events import Override
from day_brief.reader import ConsistencyReader
from day_brief.storage.sqlite import SqliteStore


def _positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="day-brief",
        description="Reconcile Google and Outlook calendars into one daily schedule.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="Run one reconciliation pass now.")

    show_parser = subparsers.add_parser("show", help="Print the stored schedule.")
    show_parser.add_argument(
        "--days",
        type=_positive_int,
        default=None,
        help="Number of dates to show (default: DAYS_AHEAD).",
    )
    show_parser.add_argument(
        "--start",
        type=date.fromisoformat,
        default=None,
        help="First date to show, YYYY-MM-DD (default: today).",
    )

    subparsers.add_parser("serve", help="Run passes on the cron schedule until stopped.")

    override_parser = subparsers.add_parser(
        "override", help="Set a manual correction for one stored event."
    )
    override_parser.add_argument("event_id", help="Canonical event id, as printed by 'show'.")
    override_parser.add_argument("--title", default=None)
    override_parser.add_argument("--project", dest="project_ref", default=None)
    override_parser.add_argument("--context", choices=("Work", "Life"), default=None)

    return parser


async def _run(settings: Settings) -> int:
    async with SqliteStore(settings.db_path) as store:
        scheduler = build_scheduler(settings, store, build_sources(settings))
        result = await scheduler.trigger("manual")
    print_reconcile_result(result)
    return 1 if result.status == "failed" else 0


async def _show(settings: Settings, start: date | None, days: int | None) -> int:
    first = start or datetime.now(tz=settings.tz).date()
    async with SqliteStore(settings.db_path) as store:
        schedules = await ConsistencyReader(store).read_range(
            first, settings.days_ahead if days is None else days
        )
    print_schedules(schedules, settings.tz)
    return 0


async def _serve(settings: Settings) -> int:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    async with SqliteStore(settings.db_path) as store:
        sources = build_sources(settings, interactive=False)
        await build_scheduler(settings, store, sources).serve(stop)
    return 0


async def _override(settings: Settings, args: argparse.Namespace) -> int:
    if args.title is None and args.project_ref is None and args.context is None:
        print("Error: give at least one of --title, --project, --context", file=sys.stderr)
        return 1
    async with SqliteStore(settings.db_path) as store:
        if not await store.get_events([args.event_id]):
            print(f"Error: no stored event with id {args.event_id}", file=sys.stderr)
            return 1
        await store.put_override(
            Override(
                event_id=args.event_id,
                title=args.title,
                project_ref=args.project_ref,
                context=args.context,
            )
        )
    print(f"Override saved for {args.event_id}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the day-brief CLI.

    Args:
        argv: Command-line arguments.  Defaults to ``sys.argv[1:]``.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv if argv is not None else sys.argv[1:])

    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    setup_logging("DEBUG" if args.verbose else settings.log_level)

    try:
        if args.command == "run":
            return asyncio.run(_run(settings))
        if args.command == "show":
            return asyncio.run(_show(settings, args.start, args.days))
        if args.command == "serve":
            return asyncio.run(_serve(settings))
        return asyncio.run(_override(settings, args))
    except DayBriefError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
