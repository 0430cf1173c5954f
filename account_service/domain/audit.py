"""Login-audit records and the projections computed over them."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from zoneinfo import ZoneInfo

from .account import Account
from .filters import Page


@dataclass(frozen=True, slots=True, order=True)
class LoginAudit:
    """One successful login of one account; immutable once recorded."""

    account: Account
    login_time: datetime
    audit_id: int = field(default=0, compare=False)


def aggregate_by_email(audits: Iterable[LoginAudit]) -> dict[str, int]:
    """Count audit rows per account email, keyed in ascending email order.

    Accounts without rows in ``audits`` are absent from the result.
    """
    counts = Counter(audit.account.email for audit in audits)
    return {email: counts[email] for email in sorted(counts)}


def distinct_local_dates(timestamps: Iterable[datetime], zone: tzinfo | None, page: Page) -> list[date]:
    """Project ascending timestamps to calendar dates in ``zone`` and paginate them.

    ``timestamps`` must already be in ascending order, which keeps the local dates
    non-decreasing; the iterable is consumed lazily and abandoned once the page is
    full.
    """
    limit = page.limit
    if limit == 0:
        return []
    dates: list[date] = []
    skipped = 0
    previous: date | None = None
    for moment in timestamps:
        day = moment.astimezone(zone).date()
        if day == previous:
            continue
        previous = day
        if skipped < page.offset:
            skipped += 1
            continue
        dates.append(day)
        if limit is not None and len(dates) >= limit:
            break
    return dates


def resolve_zone(name: str | None) -> tzinfo | None:
    """Return the configured zone, or ``None`` for the server's local zone.

    ``None`` is passed straight to :meth:`datetime.astimezone`, which applies the
    local rules (including DST) of each individual instant.
    """
    return ZoneInfo(name) if name else None
