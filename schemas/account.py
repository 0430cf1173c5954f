"""Account-related DTOs exchanged over HTTP."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field


class AddressDto(BaseModel):
    town: str | None = None
    city: str | None = None
    country: str
    zip_code: str


class AccountDto(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    middle_name: str | None = None
    last_name: str
    addresses: dict[str, AddressDto] = Field(default_factory=dict)
    contacts: dict[str, str] = Field(default_factory=dict)


class AccountWithUserDetailsDto(BaseModel):
    """Registration payload: profile plus the credentials used to log in."""

    email: EmailStr
    # bcrypt only considers the first 72 bytes.
    password: str = Field(..., min_length=1, max_length=72)
    first_name: str = Field(..., min_length=1)
    middle_name: str | None = None
    last_name: str = Field(..., min_length=1)
    addresses: dict[str, AddressDto] = Field(default_factory=dict)
    contacts: dict[str, str] = Field(default_factory=dict)
    enabled: bool = True
    granted_authorities: set[str] = Field(default_factory=lambda: {"ROLE_USER"}, min_length=1)


class AccountUpdateDto(BaseModel):
    """Partial profile update; omitted fields keep their stored values."""

    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=1, max_length=72)
    first_name: str | None = Field(default=None, min_length=1)
    middle_name: str | None = None
    last_name: str | None = Field(default=None, min_length=1)
    addresses: dict[str, AddressDto] | None = None
    contacts: dict[str, str] | None = None
