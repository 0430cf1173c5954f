"""Exceptions raised by the account and login-audit domain."""

from __future__ import annotations


class AccountServiceError(Exception):
    """Base class for failures surfaced to API callers."""


class InvalidRange(AccountServiceError, ValueError):
    """Raised when a start bound falls after its end bound."""


class InvalidPage(AccountServiceError, ValueError):
    """Raised for negative page numbers or page sizes."""


class AccountNotFound(AccountServiceError, LookupError):
    """Raised when a referenced account does not exist."""


class AccountAlreadyExists(AccountServiceError):
    """Raised when an email is already registered."""


class GrantedAuthorityNotFound(AccountServiceError, LookupError):
    """Raised when an account is granted an authority that is not defined."""


class Unauthorized(AccountServiceError):
    """Raised when the caller is not (or no longer) authenticated."""


class Forbidden(AccountServiceError):
    """Raised when the caller lacks a required authority."""


class DataStoreFailure(AccountServiceError):
    """Raised when the underlying query or transaction fails."""


class QueryCancelled(AccountServiceError):
    """Raised when a query is cancelled before completing, e.g. by statement timeout."""
