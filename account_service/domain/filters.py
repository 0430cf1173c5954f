"""Filters for login-audit queries.

A :class:`LoginAuditFilter` is a plain value describing which audit rows a caller
wants: an optional inclusive date range plus opt-in identity filters on the
owning account. It compiles either to a parameterised SQL conjunction
(:meth:`LoginAuditFilter.to_sql`) or to an in-memory predicate
(:meth:`LoginAuditFilter.matches`); both follow the same rules:

* terms are AND-ed together;
* the values supplied for one identity field form an OR-group of equality tests;
* an empty (or absent) collection contributes no term at all.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo
from typing import TYPE_CHECKING, Any, TypeVar

from .errors import InvalidPage, InvalidRange

if TYPE_CHECKING:
    from .audit import LoginAudit

T = TypeVar("T")

# Last representable instant of a calendar day at millisecond precision.
END_OF_DAY = time(23, 59, 59, 999000)

# (filter attribute, account attribute, SQL column) in predicate order.
_IDENTITY_FIELDS: tuple[tuple[str, str, str], ...] = (
    ("emails", "email", "a.email"),
    ("first_names", "first_name", "a.first_name"),
    ("middle_names", "middle_name", "a.middle_name"),
    ("last_names", "last_name", "a.last_name"),
)


def _at(day: date, clock: time, zone: tzinfo | None) -> datetime:
    moment = datetime.combine(day, clock, tzinfo=zone)
    return moment if zone is not None else moment.astimezone()


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive bounds on a login timestamp; ``None`` leaves that side open."""

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise InvalidRange("Start date is after end date")

    @classmethod
    def from_dates(cls, start: date | None, end: date | None, zone: tzinfo | None) -> "DateRange":
        """Map calendar dates to local midnight (start) and local end of day (end).

        ``zone=None`` uses the server's local zone.
        """
        return cls(
            start=_at(start, time.min, zone) if start is not None else None,
            end=_at(end, END_OF_DAY, zone) if end is not None else None,
        )

    def contains(self, moment: datetime) -> bool:
        """Return ``True`` when ``moment`` lies within both present bounds."""
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True

    def sql_terms(self, column: str) -> tuple[list[str], list[Any]]:
        """Return the SQL inequalities and parameters for the present bounds."""
        clauses: list[str] = []
        params: list[Any] = []
        if self.start is not None:
            clauses.append(f"{column} >= %s")
            params.append(self.start)
        if self.end is not None:
            clauses.append(f"{column} <= %s")
            params.append(self.end)
        return clauses, params


@dataclass(frozen=True, slots=True)
class Page:
    """Zero-based page request.

    ``size=None`` requests every remaining row; ``size=0`` requests an empty page.
    """

    number: int = 0
    size: int | None = None

    def __post_init__(self) -> None:
        if self.number < 0:
            raise InvalidPage("page must not be negative")
        if self.size is not None and self.size < 0:
            raise InvalidPage("page size must not be negative")

    @property
    def offset(self) -> int:
        if self.size is None:
            return 0
        return self.number * self.size

    @property
    def limit(self) -> int | None:
        """Maximum number of rows, or ``None`` for no limit."""
        if self.size is None:
            # Every row already belongs to page zero of an unbounded listing.
            return None if self.number == 0 else 0
        return self.size

    def apply(self, rows: Sequence[T]) -> list[T]:
        """Slice an already ordered in-memory sequence."""
        limit = self.limit
        if limit is None:
            return list(rows[self.offset :])
        return list(rows[self.offset : self.offset + limit])


def _normalise(values: Iterable[str] | str | None) -> frozenset[str]:
    if not values:
        return frozenset()
    if isinstance(values, str):
        return frozenset({values})
    return frozenset(values)


@dataclass(frozen=True, slots=True)
class LoginAuditFilter:
    """Conjunctive filter over audit rows and the accounts that own them."""

    date_range: DateRange = DateRange()
    emails: frozenset[str] = frozenset()
    first_names: frozenset[str] = frozenset()
    middle_names: frozenset[str] = frozenset()
    last_names: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        for attribute, _, _ in _IDENTITY_FIELDS:
            object.__setattr__(self, attribute, _normalise(getattr(self, attribute)))

    def identity_terms(self) -> list[tuple[str, tuple[str, ...]]]:
        """Return ``(account attribute, accepted values)`` for each non-empty field."""
        terms = []
        for attribute, account_attribute, _ in _IDENTITY_FIELDS:
            values: frozenset[str] = getattr(self, attribute)
            if values:
                terms.append((account_attribute, tuple(sorted(values))))
        return terms

    def matches(self, audit: LoginAudit) -> bool:
        """Evaluate the filter against a single audit row."""
        if not self.date_range.contains(audit.login_time):
            return False
        for account_attribute, values in self.identity_terms():
            if getattr(audit.account, account_attribute) not in values:
                return False
        return True

    def to_sql(self) -> tuple[str, list[Any]]:
        """Compile to a ``WHERE`` body over ``account_login_audit l JOIN account a``."""
        clauses, params = self.date_range.sql_terms("l.login_time")
        columns = {account_attribute: column for _, account_attribute, column in _IDENTITY_FIELDS}
        for account_attribute, values in self.identity_terms():
            column = columns[account_attribute]
            clauses.append("(" + " OR ".join(f"{column} = %s" for _ in values) + ")")
            params.extend(values)
        if not clauses:
            return "TRUE", params
        return " AND ".join(clauses), params
