"""Calendar-source errors and retry logic for Google Calendar reads.

Every error here is a :class:`~day_brief.exceptions.SourceFetchError`, so
the pipeline's per-source isolation treats them like any other source
failure.

Exception hierarchy::

    SourceFetchError
    +-- CalendarAPIError           (base for Google Calendar API errors)
        +-- CalendarAuthError      (authentication / 401 failures)
        +-- CalendarRateLimitError (HTTP 429 rate-limit responses)
        +-- CalendarNotFoundError  (HTTP 404, e.g. unknown calendar id)
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from googleapiclient.errors import HttpError

from day_brief.exceptions import SourceFetchError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_SOURCE = "google"


class CalendarAPIError(SourceFetchError):
    """Base exception for Google Calendar API errors.

    Attributes:
        status_code: HTTP status code from the API, or ``None`` if the
            error did not originate from an HTTP response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, source=_SOURCE)
        self.status_code = status_code


class CalendarAuthError(CalendarAPIError):
    """Raised when Calendar API authentication fails (401 or refresh failure)."""

    def __init__(self, message: str = "Calendar authentication failed") -> None:
        super().__init__(message, status_code=401)


class CalendarRateLimitError(CalendarAPIError):
    """Raised when the Calendar API keeps returning HTTP 429."""

    def __init__(self, message: str = "Calendar API rate limit exceeded") -> None:
        super().__init__(message, status_code=429)


class CalendarNotFoundError(CalendarAPIError):
    """Raised when a calendar id does not exist or is not shared (HTTP 404)."""

    def __init__(self, message: str = "Calendar not found") -> None:
        super().__init__(message, status_code=404)


_DEFAULT_MAX_RETRIES = 3
_DEFAULT_BASE_DELAY = 1.0  # seconds
_AUTH_RETRY_LIMIT = 1


def _classify_http_error(error: HttpError) -> CalendarAPIError:
    """Map an ``HttpError`` to the matching calendar exception."""
    status = error.resp.status

    if status == 404:
        return CalendarNotFoundError(str(error))
    if status == 429:
        return CalendarRateLimitError(str(error))
    if status == 401:
        return CalendarAuthError(str(error))
    return CalendarAPIError(str(error), status_code=status)


def with_retry(
    max_retries: int = _DEFAULT_MAX_RETRIES,
    base_delay: float = _DEFAULT_BASE_DELAY,
) -> Callable[[F], F]:
    """Decorator that retries blocking Calendar API reads on transient failures.

    Retry policy:

    - **HTTP 429**: exponential backoff, up to *max_retries*.
    - **HTTP 401**: call ``self._refresh_credentials()`` when the instance
      has one, then retry once.
    - **Network errors** (``OSError``, ``TimeoutError``): exponential
      backoff, up to *max_retries*.
    - **HTTP 404** and any other HTTP error: raise immediately.

    The wrapped callable runs in a worker thread (the source hands it to
    :func:`asyncio.to_thread`), so backing off with :func:`time.sleep`
    never blocks the event loop.

    Args:
        max_retries: Maximum retries for rate-limit and network errors.
        base_delay: Initial backoff delay in seconds, doubled per retry.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            auth_retries = 0

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)

                except HttpError as exc:
                    cal_error = _classify_http_error(exc)

                    if isinstance(cal_error, CalendarRateLimitError):
                        if attempt >= max_retries:
                            logger.error(
                                "Rate limit exceeded after %d retries: %s",
                                max_retries,
                                exc,
                            )
                            raise cal_error from exc
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            "Rate limited (429), retrying in %.1fs (attempt %d/%d)",
                            delay,
                            attempt + 1,
                            max_retries,
                        )
                        time.sleep(delay)
                        continue

                    if isinstance(cal_error, CalendarAuthError):
                        if auth_retries >= _AUTH_RETRY_LIMIT:
                            logger.error("Auth failed after token refresh: %s", exc)
                            raise cal_error from exc
                        auth_retries += 1
                        logger.warning("Auth expired (401), attempting token refresh")
                        instance = args[0] if args else None
                        refresh = getattr(instance, "_refresh_credentials", None)
                        if callable(refresh):
                            try:
                                refresh()
                            except Exception as refresh_exc:
                                logger.error("Token refresh failed: %s", refresh_exc)
                                raise CalendarAuthError(
                                    f"Token refresh failed: {refresh_exc}"
                                ) from refresh_exc
                        continue

                    logger.error("Calendar API error (HTTP %s): %s", cal_error.status_code, exc)
                    raise cal_error from exc

                except (OSError, TimeoutError) as exc:
                    if attempt >= max_retries:
                        logger.error("Network error after %d retries: %s", max_retries, exc)
                        raise CalendarAPIError(
                            f"Network error after {max_retries} retries: {exc}"
                        ) from exc
                    delay = base_delay * (2**attempt)
                    logger.warning(
                        "Network error, retrying in %.1fs (attempt %d/%d): %s",
                        delay,
                        attempt + 1,
                        max_retries,
                        exc,
                    )
                    time.sleep(delay)
                    continue

            raise CalendarAPIError("Retry loop exhausted unexpectedly")  # pragma: no cover

        return wrapper  # type: ignore[return-value]

    return decorator
