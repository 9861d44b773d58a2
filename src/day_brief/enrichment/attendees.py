"""External attendee enrichment with a cache and a monthly lookup budget.

Every answer the lookup oracle gives (found, not found, error) is cached in
the store so an address is looked up at most once.  Internal and owner
addresses are never looked up.  Once the month's budget is spent,
uncached attendees pass through unenriched and are retried next month.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx

from day_brief.models.events import Attendee, ContactRecord
from day_brief.storage.base import EventStore

logger = logging.getLogger(__name__)

PDL_ENRICH_URL = "https://api.peopledatalabs.com/v5/person/enrich"

_SENIORITY_ORDER = (
    ("owner", "owner"),
    ("partner", "owner"),
    ("cxo", "c_suite"),
    ("vp", "vp"),
    ("director", "director"),
    ("manager", "manager"),
    ("senior", "senior"),
    ("entry", "entry"),
)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class AttendeeLookup(Protocol):
    """Finds professional details for an email address."""

    async def lookup(self, email: str) -> ContactRecord:
        """Return what is known about *email*; never raises for "not found"."""
        ...


class PeopleDataLabsLookup:
    """:class:`AttendeeLookup` backed by the People Data Labs person API.

    Args:
        api_key: PDL API key.
        client: Optional shared :class:`httpx.AsyncClient`.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._client = client
        self._timeout = timeout

    async def lookup(self, email: str) -> ContactRecord:
        headers = {"X-Api-Key": self._api_key, "Content-Type": "application/json"}
        try:
            if self._client is not None:
                response = await self._client.post(
                    PDL_ENRICH_URL, json={"email": email}, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(
                        PDL_ENRICH_URL, json={"email": email}, headers=headers
                    )
        except httpx.HTTPError as exc:
            logger.error("PDL network error for %s: %s", email, exc)
            return ContactRecord(email=email, status="error", looked_up_at=_utc_now())

        if response.status_code == 404:
            logger.info("PDL: no match for %s", email)
            return ContactRecord(email=email, status="not_found", looked_up_at=_utc_now())
        if response.status_code != 200:
            logger.error("PDL: HTTP %d for %s", response.status_code, email)
            return ContactRecord(email=email, status="error", looked_up_at=_utc_now())

        return parse_pdl_person(email, response.json())


def parse_pdl_person(email: str, payload: dict[str, Any]) -> ContactRecord:
    """Reduce a PDL person-enrich response to a :class:`ContactRecord`.

    PDL nests the person under ``data``; seniority is the highest entry of
    ``job_title_levels``.
    """
    data = payload.get("data") or payload
    levels = data.get("job_title_levels") or []
    seniority = next((label for level, label in _SENIORITY_ORDER if level in levels), "unknown")
    return ContactRecord(
        email=email,
        name=data.get("full_name"),
        company=data.get("job_company_name"),
        job_title=data.get("job_title"),
        seniority=seniority,
        linkedin_url=data.get("linkedin_url"),
        status="enriched",
        looked_up_at=_utc_now(),
    )


class AttendeeEnricher:
    """Adds company/title/seniority to external attendees.

    Args:
        store: Holds the contact cache and the lookup usage counter.
        lookup: The lookup oracle.
        monthly_budget: Maximum lookups per calendar month (UTC).
        internal_domains: Domains never looked up.
        owner_emails: The calendar owner's own addresses.
        clock: Returns "now"; decides the budget month.
    """

    def __init__(
        self,
        store: EventStore,
        lookup: AttendeeLookup,
        monthly_budget: int = 100,
        internal_domains: Iterable[str] = (),
        owner_emails: Iterable[str] = (),
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._lookup = lookup
        self._budget = monthly_budget
        self._internal_domains = {d.lower() for d in internal_domains}
        self._owner_emails = {e.lower() for e in owner_emails}
        self._clock = clock

    def is_internal(self, email: str | None) -> bool:
        """Whether *email* is missing, the owner's, or on an internal domain."""
        if not email:
            return True
        address = email.lower()
        if address in self._owner_emails:
            return True
        domain = address.rpartition("@")[2]
        return domain in self._internal_domains

    async def enrich(self, attendees: list[Attendee]) -> list[Attendee]:
        """Enrich *attendees* sequentially, preserving order."""
        return [await self.enrich_one(attendee) for attendee in attendees]

    async def enrich_one(self, attendee: Attendee) -> Attendee:
        """Enrich a single attendee; any failure returns it unchanged."""
        if self.is_internal(attendee.email):
            return attendee

        try:
            cached = await self._store.get_contact(attendee.email)
            if cached is not None:
                logger.debug("Contact cache hit: %s", attendee.email)
                return _apply(attendee, cached)

            month = self._clock().strftime("%Y-%m")
            used = await self._store.lookup_usage(month)
            if used >= self._budget:
                logger.warning(
                    "Monthly lookup budget reached (%d/%d); not enriching %s",
                    used,
                    self._budget,
                    attendee.email,
                )
                return attendee

            logger.info("Looking up new contact %s", attendee.email)
            record = await self._lookup.lookup(attendee.email)
            await self._store.record_lookup(attendee.email, month, record.status == "enriched")
            if record.name is None:
                record = record.model_copy(update={"name": attendee.name})
            await self._store.save_contact(record)
            return _apply(attendee, record)
        except Exception:
            logger.exception("Attendee enrichment failed for %s", attendee.email)
            return attendee


def _apply(attendee: Attendee, record: ContactRecord) -> Attendee:
    if record.status != "enriched":
        return attendee
    return attendee.model_copy(
        update={
            "company": record.company,
            "job_title": record.job_title,
            "seniority": record.seniority,
            "linkedin_url": record.linkedin_url,
        }
    )
