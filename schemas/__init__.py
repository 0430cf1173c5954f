"""Shared schema exports."""

from .account import AccountDto, AccountUpdateDto, AccountWithUserDetailsDto, AddressDto

__all__ = [
    "AccountDto",
    "AccountUpdateDto",
    "AccountWithUserDetailsDto",
    "AddressDto",
]
