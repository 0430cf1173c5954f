"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass, field

from .account import ROLE_USER, Address


@dataclass(slots=True)
class SaveAccountInput:
    """Validated inputs required to register an account with its credentials."""

    email: str
    password: str
    first_name: str
    last_name: str
    middle_name: str | None = None
    addresses: dict[str, Address] = field(default_factory=dict)
    contacts: dict[str, str] = field(default_factory=dict)
    enabled: bool = True
    authorities: frozenset[str] = frozenset({ROLE_USER})


@dataclass(slots=True)
class UpdateAccountInput:
    """Profile fields that may be changed on an existing account.

    ``None`` leaves the stored value untouched; ``middle_name`` is cleared with an
    empty string.
    """

    email: str | None = None
    password: str | None = None
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    addresses: dict[str, Address] | None = None
    contacts: dict[str, str] | None = None
