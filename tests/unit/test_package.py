"""Tests for day-brief package structure and imports."""

from __future__ import annotations

import re
import subprocess
import sys


def test_package_has_version() -> None:
    import day_brief

    assert re.match(r"^\d+\.\d+\.\d+$", day_brief.__version__)


def test_public_exports_resolve() -> None:
    """Everything in ``__all__`` must be importable from the package root."""
    import day_brief

    for name in day_brief.__all__:
        assert hasattr(day_brief, name), name


def test_main_module_without_command_exits_2() -> None:
    """``python -m day_brief`` with no subcommand prints usage, no traceback."""
    result = subprocess.run(
        [sys.executable, "-m", "day_brief"],
        capture_output=True,
        text=True,
        timeout=10,
    )
    assert result.returncode == 2
    assert "usage: day-brief" in result.stderr
    assert "Traceback" not in result.stderr


def test_subpackage_exports() -> None:
    from day_brief.enrichment import EnrichmentStage  # noqa: F401
    from day_brief.sources import GoogleCalendarSource, OutlookExportSource  # noqa: F401
    from day_brief.storage import InMemoryStore, SqliteStore  # noqa: F401
