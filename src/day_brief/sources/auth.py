"""Read-only OAuth 2.0 credentials for the Google Calendar source.

Uses the Desktop application flow from ``google-auth-oauthlib``: a cached
token is reused while valid, refreshed when expired, and the browser flow
runs only when neither works.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from day_brief.sources.exceptions import CalendarAuthError

logger = logging.getLogger(__name__)

SCOPES: list[str] = ["https://www.googleapis.com/auth/calendar.readonly"]
"""Reconciliation only ever reads calendars."""


def get_calendar_credentials(
    credentials_path: Path | str,
    token_path: Path | str,
    *,
    interactive: bool = True,
) -> Credentials:
    """Obtain valid read-only Google Calendar credentials.

    Args:
        credentials_path: OAuth client secrets file from Google Cloud Console.
        token_path: Where the cached user token lives.  Created/updated
            automatically.
        interactive: When ``False`` (scheduled runs), never open a browser;
            raise instead.

    Returns:
        Valid :class:`google.oauth2.credentials.Credentials`.

    Raises:
        CalendarAuthError: If no cached or refreshable token exists and the
            browser flow is unavailable or the secrets file is missing.
    """
    credentials_path = Path(credentials_path)
    token_path = Path(token_path)

    creds = _load_cached_token(token_path)
    if creds is not None and creds.valid:
        logger.debug("Loaded valid cached token from %s", token_path)
        return creds

    if creds is not None and creds.expired and creds.refresh_token:
        logger.info("Cached token expired, attempting refresh")
        refreshed = _refresh_token(creds)
        if refreshed is not None:
            _save_token(refreshed, token_path)
            return refreshed
        logger.warning("Token refresh failed")

    if not interactive:
        raise CalendarAuthError(
            f"No usable Google token at {token_path}; run 'python -m day_brief run' "
            "interactively once to authorize"
        )

    logger.info("Starting browser-based OAuth flow")
    creds = _run_browser_flow(credentials_path)
    _save_token(creds, token_path)
    return creds


def _load_cached_token(token_path: Path) -> Credentials | None:
    if not token_path.exists():
        logger.info("No cached token found at %s", token_path)
        return None

    try:
        return Credentials.from_authorized_user_file(str(token_path), SCOPES)
    except (json.JSONDecodeError, ValueError, KeyError) as exc:
        logger.warning("Failed to parse cached token at %s: %s", token_path, exc)
        return None


def _refresh_token(creds: Credentials) -> Credentials | None:
    try:
        creds.refresh(Request())
    except GoogleAuthError as exc:
        logger.warning("Token refresh failed: %s", exc)
        return None
    logger.info("Token refresh succeeded")
    return creds


def _run_browser_flow(credentials_path: Path) -> Credentials:
    if not credentials_path.exists():
        msg = f"OAuth client secrets file not found: {credentials_path}"
        logger.error(msg)
        raise CalendarAuthError(msg)

    flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes=SCOPES)
    creds = flow.run_local_server(port=0)
    logger.info("Browser OAuth flow completed successfully")
    return creds


def _save_token(creds: Credentials, token_path: Path) -> None:
    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json())
    logger.info("Token saved to %s", token_path)
