from __future__ import annotations

from dataclasses import dataclass, field
from functools import total_ordering

ROLE_ADMIN = "ROLE_ADMIN"
ROLE_USER = "ROLE_USER"
KNOWN_AUTHORITIES = frozenset({ROLE_ADMIN, ROLE_USER})


@dataclass(frozen=True, slots=True, order=True)
class Address:
    """Postal address embedded in an account, identified by country and zip code."""

    country: str
    zip_code: str
    town: str | None = field(default=None, compare=False)
    city: str | None = field(default=None, compare=False)


@total_ordering
@dataclass(slots=True, eq=False)
class Account:
    """Aggregate root for a user identity; the email is its natural key."""

    account_id: int
    email: str
    first_name: str
    last_name: str
    middle_name: str | None = None
    addresses: dict[str, Address] = field(default_factory=dict)
    contacts: dict[str, str] = field(default_factory=dict)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return self.email == other.email

    def __lt__(self, other: Account) -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return self.email < other.email

    def __hash__(self) -> int:
        return hash(self.email)


@dataclass(slots=True)
class Credentials:
    """Stored user details used to authenticate an account."""

    account_id: int
    password_hash: str
    enabled: bool = True
    authorities: frozenset[str] = frozenset({ROLE_USER})
