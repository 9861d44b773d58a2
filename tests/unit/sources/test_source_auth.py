"""Tests for read-only Google Calendar OAuth credentials.

``get_calendar_credentials`` tries, in order: the cached token, a refresh
of an expired token, and (only when interactive) the browser flow.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, create_autospec, patch

import pytest
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials

from day_brief.sources.auth import (
    SCOPES,
    _refresh_token,
    _run_browser_flow,
    _save_token,
    get_calendar_credentials,
)
from day_brief.sources.exceptions import CalendarAuthError


def _fresh_credentials() -> MagicMock:
    creds = create_autospec(Credentials, instance=True)
    creds.valid = True
    creds.to_json.return_value = '{"token": "new"}'
    return creds


class TestCachedToken:
    def test_valid_cached_token_used(self, tmp_path: Path, mock_credentials: MagicMock) -> None:
        """A valid cached token is returned without refresh or browser flow."""
        token_path = tmp_path / "token.json"

        with patch(
            "day_brief.sources.auth._load_cached_token",
            return_value=mock_credentials,
        ) as mock_load, patch(
            "day_brief.sources.auth._run_browser_flow",
        ) as mock_flow:
            result = get_calendar_credentials(tmp_path / "credentials.json", token_path)

        mock_load.assert_called_once_with(token_path)
        mock_flow.assert_not_called()
        assert result is mock_credentials

    def test_no_token_file_launches_browser_flow(self, tmp_path: Path) -> None:
        creds_path = tmp_path / "credentials.json"
        fresh = _fresh_credentials()

        with patch(
            "day_brief.sources.auth._run_browser_flow",
            return_value=fresh,
        ) as mock_flow, patch(
            "day_brief.sources.auth._save_token",
        ) as mock_save:
            result = get_calendar_credentials(creds_path, tmp_path / "token.json")

        mock_flow.assert_called_once_with(creds_path)
        mock_save.assert_called_once_with(fresh, tmp_path / "token.json")
        assert result is fresh

    def test_corrupt_token_file_ignored(self, tmp_path: Path) -> None:
        token_path = tmp_path / "token.json"
        token_path.write_text("{not json")

        with pytest.raises(CalendarAuthError, match="No usable Google token"):
            get_calendar_credentials(
                tmp_path / "credentials.json", token_path, interactive=False
            )


class TestRefresh:
    def test_expired_token_refreshed_and_saved(
        self, tmp_path: Path, mock_expired_credentials: MagicMock
    ) -> None:
        token_path = tmp_path / "token.json"

        with patch(
            "day_brief.sources.auth._load_cached_token",
            return_value=mock_expired_credentials,
        ), patch(
            "day_brief.sources.auth._refresh_token",
            return_value=mock_expired_credentials,
        ) as mock_refresh, patch(
            "day_brief.sources.auth._save_token",
        ) as mock_save:
            result = get_calendar_credentials(tmp_path / "credentials.json", token_path)

        mock_refresh.assert_called_once_with(mock_expired_credentials)
        mock_save.assert_called_once_with(mock_expired_credentials, token_path)
        assert result is mock_expired_credentials

    def test_refresh_failure_falls_back_to_browser(
        self, tmp_path: Path, mock_expired_credentials: MagicMock
    ) -> None:
        creds_path = tmp_path / "credentials.json"
        fresh = _fresh_credentials()

        with patch(
            "day_brief.sources.auth._load_cached_token",
            return_value=mock_expired_credentials,
        ), patch(
            "day_brief.sources.auth._refresh_token",
            return_value=None,
        ), patch(
            "day_brief.sources.auth._run_browser_flow",
            return_value=fresh,
        ) as mock_flow, patch(
            "day_brief.sources.auth._save_token",
        ):
            result = get_calendar_credentials(creds_path, tmp_path / "token.json")

        mock_flow.assert_called_once_with(creds_path)
        assert result is fresh

    def test_refresh_error_returns_none(self, mock_expired_credentials: MagicMock) -> None:
        mock_expired_credentials.refresh.side_effect = RefreshError("invalid_grant")

        assert _refresh_token(mock_expired_credentials) is None


class TestNonInteractive:
    """Scheduled runs never open a browser."""

    def test_raises_instead_of_browser_flow(self, tmp_path: Path) -> None:
        with patch(
            "day_brief.sources.auth._load_cached_token",
            return_value=None,
        ), patch(
            "day_brief.sources.auth._run_browser_flow",
        ) as mock_flow, pytest.raises(CalendarAuthError):
            get_calendar_credentials(
                tmp_path / "credentials.json", tmp_path / "token.json", interactive=False
            )

        mock_flow.assert_not_called()


class TestBrowserFlow:
    def test_missing_client_secrets_raises(self, tmp_path: Path) -> None:
        with pytest.raises(CalendarAuthError, match="client secrets"):
            _run_browser_flow(tmp_path / "credentials.json")

    def test_read_only_scope_requested(self, tmp_path: Path) -> None:
        creds_path = tmp_path / "credentials.json"
        creds_path.write_text('{"installed": {"client_id": "fake", "client_secret": "fake"}}')
        fresh = _fresh_credentials()
        mock_flow_instance = MagicMock()
        mock_flow_instance.run_local_server.return_value = fresh

        with patch(
            "day_brief.sources.auth.InstalledAppFlow.from_client_secrets_file",
            return_value=mock_flow_instance,
        ) as mock_from_secrets:
            result = _run_browser_flow(creds_path)

        mock_from_secrets.assert_called_once_with(str(creds_path), scopes=SCOPES)
        assert SCOPES == ["https://www.googleapis.com/auth/calendar.readonly"]
        assert result is fresh

    def test_token_written_with_parent_dirs(self, tmp_path: Path) -> None:
        token_path = tmp_path / "nested" / "token.json"

        _save_token(_fresh_credentials(), token_path)

        assert token_path.read_text() == '{"token": "new"}'
