"""Login-audit workflows: recording logins and the administrative reports over them."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, timezone, tzinfo
from typing import Protocol

from ..cache import LoginDatesCache, NullLoginDatesCache
from ..metrics import LOGIN_AUDITS, LOGIN_AUDIT_QUERY_SECONDS, LOGIN_DATES_CACHE_LOOKUPS
from .account import Account
from .audit import LoginAudit, aggregate_by_email
from .filters import DateRange, LoginAuditFilter, Page

logger = logging.getLogger(__name__)


class LoginAuditStore(Protocol):
    def create_audit(self, email: str, login_time: datetime) -> int: ...

    def find_by_filters(self, audit_filter: LoginAuditFilter, page: Page) -> list[LoginAudit]: ...

    def find_distinct_accounts(self, date_range: DateRange, page: Page) -> list[Account]: ...

    def find_distinct_login_dates(self, zone: tzinfo | None, page: Page) -> list[date]: ...


class LoginAuditService:
    """Login audit backed by a :class:`LoginAuditStore`."""

    def __init__(
        self,
        repository: LoginAuditStore,
        *,
        zone: tzinfo | None = None,
        cache: LoginDatesCache | None = None,
    ) -> None:
        """Store the audit store, the date-bucketing zone and the optional dates cache.

        ``zone=None`` buckets dates in the server's local zone.
        """
        self._repository = repository
        self._zone = zone
        self._cache = cache or NullLoginDatesCache()

    def audit(self, email: str) -> None:
        """Record a successful login for the account identified by ``email``.

        Raises
        ------
        AccountNotFound
            When no account carries ``email``.
        """
        audit_id = self._repository.create_audit(email, datetime.now(timezone.utc))
        self._cache.clear()
        LOGIN_AUDITS.inc()
        logger.info("login audited", extra={"audit_id": audit_id, "email": email})

    def evict_login_dates(self) -> None:
        """Forget cached login dates, e.g. after an account and its audits are deleted."""
        self._cache.clear()

    def find_distinct_login_dates(self, page: Page | None = None) -> list[date]:
        """Return distinct calendar dates with login activity, ascending."""
        page = page or Page()
        cached = self._cache.get(page)
        if cached is not None:
            LOGIN_DATES_CACHE_LOOKUPS.labels(outcome="hit").inc()
            return cached
        LOGIN_DATES_CACHE_LOOKUPS.labels(outcome="miss").inc()
        with LOGIN_AUDIT_QUERY_SECONDS.labels(operation="dates").time():
            dates = self._repository.find_distinct_login_dates(self._zone, page)
        self._cache.set(page, dates)
        return dates

    def find_accounts_with_login_activity(
        self,
        start: date | None = None,
        end: date | None = None,
        page: Page | None = None,
    ) -> list[Account]:
        """Return accounts that logged in between ``start`` and ``end`` (inclusive), by email.

        Raises
        ------
        InvalidRange
            When ``start`` falls after ``end``; no query is issued.
        """
        date_range = DateRange.from_dates(start, end, self._zone)
        with LOGIN_AUDIT_QUERY_SECONDS.labels(operation="accounts").time():
            return self._repository.find_distinct_accounts(date_range, page or Page())

    def find_filtered_login_audits(
        self,
        start: date | None = None,
        end: date | None = None,
        emails: Iterable[str] | None = None,
        first_names: Iterable[str] | None = None,
        middle_names: Iterable[str] | None = None,
        last_names: Iterable[str] | None = None,
        page: Page | None = None,
    ) -> list[LoginAudit]:
        """Return the raw audit rows matching the filters, ordered by account email."""
        audit_filter = LoginAuditFilter(
            date_range=DateRange.from_dates(start, end, self._zone),
            emails=emails,
            first_names=first_names,
            middle_names=middle_names,
            last_names=last_names,
        )
        with LOGIN_AUDIT_QUERY_SECONDS.labels(operation="filters").time():
            return self._repository.find_by_filters(audit_filter, page or Page())

    def find_filtered_login_counts(
        self,
        start: date | None = None,
        end: date | None = None,
        emails: Iterable[str] | None = None,
        first_names: Iterable[str] | None = None,
        middle_names: Iterable[str] | None = None,
        last_names: Iterable[str] | None = None,
        page: Page | None = None,
    ) -> dict[str, int]:
        """Return login counts per email for the audit rows matching the filters.

        Pagination applies to the audit rows before they are counted.
        """
        audits = self.find_filtered_login_audits(
            start, end, emails, first_names, middle_names, last_names, page
        )
        return aggregate_by_email(audits)
