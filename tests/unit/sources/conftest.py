"""Shared fixtures for calendar source tests."""

from __future__ import annotations

from unittest.mock import MagicMock, create_autospec

import pytest
from google.oauth2.credentials import Credentials
from googleapiclient.errors import HttpError
from httplib2 import Response


@pytest.fixture()
def mock_credentials() -> MagicMock:
    """Return a mock Credentials object that reports as valid."""
    creds = create_autospec(Credentials, instance=True)
    creds.valid = True
    creds.expired = False
    creds.refresh_token = "fake-refresh-token"
    creds.to_json.return_value = '{"token": "fake"}'
    return creds


@pytest.fixture()
def mock_expired_credentials() -> MagicMock:
    """Return a mock Credentials object that is expired but has a refresh token."""
    creds = create_autospec(Credentials, instance=True)
    creds.valid = False
    creds.expired = True
    creds.refresh_token = "fake-refresh-token"
    creds.to_json.return_value = '{"token": "refreshed"}'
    return creds


@pytest.fixture()
def make_http_error():
    """Factory for ``HttpError`` instances with a given status code."""

    def _make(status: int) -> HttpError:
        return HttpError(Response({"status": str(status)}), b"simulated error")

    return _make
