"""HTTP route definitions for accounts and token issuance."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, EmailStr

from schemas import AccountDto, AccountUpdateDto, AccountWithUserDetailsDto, AddressDto

from ..domain.account import Account, Address
from ..domain.contracts import SaveAccountInput, UpdateAccountInput
from ..domain.errors import AccountServiceError
from ..domain.filters import Page
from ..domain.service import AccountService
from .deps import Principal, get_service, require_admin, require_user
from .errors import http_error

router = APIRouter(prefix="/v1")


class TokenRequest(BaseModel):
    """Resource-owner password grant."""

    username: EmailStr
    password: str
    scopes: list[str] | None = None


class TokenResponse(BaseModel):
    """Access token, its lifetime, and the refresh token that can renew it."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    refresh_token: str
    refresh_expires_in: int


class RefreshTokenRequest(BaseModel):
    """Refresh grant."""

    refresh_token: str
    scopes: list[str] | None = None


def account_to_dto(account: Account) -> AccountDto:
    """Map an account onto its public representation."""
    return AccountDto(
        id=account.account_id,
        email=account.email,
        first_name=account.first_name,
        middle_name=account.middle_name,
        last_name=account.last_name,
        addresses={
            label: AddressDto(
                town=address.town,
                city=address.city,
                country=address.country,
                zip_code=address.zip_code,
            )
            for label, address in account.addresses.items()
        },
        contacts=dict(account.contacts),
    )


def _addresses_from_dto(addresses: dict[str, AddressDto]) -> dict[str, Address]:
    return {
        label: Address(country=dto.country, zip_code=dto.zip_code, town=dto.town, city=dto.city)
        for label, dto in addresses.items()
    }


def _update_from_dto(payload: AccountUpdateDto) -> UpdateAccountInput:
    return UpdateAccountInput(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        middle_name=payload.middle_name,
        last_name=payload.last_name,
        addresses=_addresses_from_dto(payload.addresses) if payload.addresses is not None else None,
        contacts=payload.contacts,
    )


def page_request(page: int | None, size: int | None) -> Page:
    """An omitted page and size means every row."""
    return Page(number=page or 0, size=size)


@router.post("/oauth/token", response_model=TokenResponse)
def issue_token(
    payload: TokenRequest,
    service: AccountService = Depends(get_service),
) -> TokenResponse:
    """Authenticate with email and password; a successful login is audited."""
    try:
        bundle = service.issue_token(payload.username, payload.password, payload.scopes)
    except AccountServiceError as exc:
        raise http_error(exc) from exc
    return TokenResponse(
        access_token=bundle.access_token,
        expires_in=bundle.access_expires_in,
        refresh_token=bundle.refresh_token,
        refresh_expires_in=bundle.refresh_expires_in,
    )


@router.post("/oauth/token/refresh", response_model=TokenResponse)
def refresh_token(
    payload: RefreshTokenRequest,
    service: AccountService = Depends(get_service),
) -> TokenResponse:
    try:
        bundle = service.refresh_access_token(payload.refresh_token, payload.scopes)
    except AccountServiceError as exc:
        raise http_error(exc) from exc
    return TokenResponse(
        access_token=bundle.access_token,
        expires_in=bundle.access_expires_in,
        refresh_token=bundle.refresh_token,
        refresh_expires_in=bundle.refresh_expires_in,
    )


@router.get("/accounts", response_model=list[AccountDto], dependencies=[Depends(require_admin)])
def find_all_accounts(
    page: int | None = Query(default=None, ge=0),
    size: int | None = Query(default=None, ge=0),
    service: AccountService = Depends(get_service),
) -> list[AccountDto]:
    """List accounts ordered by email."""
    try:
        accounts = service.find_all_accounts(page_request(page, size))
    except AccountServiceError as exc:
        raise http_error(exc) from exc
    return [account_to_dto(account) for account in accounts]


@router.post(
    "/accounts",
    response_model=AccountDto,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def save_account(
    payload: AccountWithUserDetailsDto,
    service: AccountService = Depends(get_service),
) -> AccountDto:
    """Register an account with its login credentials."""
    try:
        account = service.save_account(
            SaveAccountInput(
                email=payload.email,
                password=payload.password,
                first_name=payload.first_name,
                middle_name=payload.middle_name,
                last_name=payload.last_name,
                addresses=_addresses_from_dto(payload.addresses),
                contacts=dict(payload.contacts),
                enabled=payload.enabled,
                authorities=frozenset(payload.granted_authorities),
            )
        )
    except AccountServiceError as exc:
        raise http_error(exc) from exc
    return account_to_dto(account)


@router.get("/accounts/me", response_model=AccountDto)
def get_current_account(
    principal: Principal = Depends(require_user),
    service: AccountService = Depends(get_service),
) -> AccountDto:
    """Return the caller's own account."""
    try:
        account = service.get_current_account(principal.email)
    except AccountServiceError as exc:
        raise http_error(exc) from exc
    return account_to_dto(account)


@router.put("/accounts/me", response_model=AccountDto)
def update_current_account(
    payload: AccountUpdateDto,
    principal: Principal = Depends(require_user),
    service: AccountService = Depends(get_service),
) -> AccountDto:
    """Edit the caller's own profile."""
    try:
        account = service.update_current_account(principal.email, _update_from_dto(payload))
    except AccountServiceError as exc:
        raise http_error(exc) from exc
    return account_to_dto(account)


@router.get(
    "/accounts/email/{email}",
    response_model=AccountDto,
    dependencies=[Depends(require_admin)],
)
def find_account_by_email(
    email: str,
    service: AccountService = Depends(get_service),
) -> AccountDto:
    try:
        account = service.find_account_by_email(email)
    except AccountServiceError as exc:
        raise http_error(exc) from exc
    return account_to_dto(account)


@router.delete(
    "/accounts/email/{email}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_account_by_email(
    email: str,
    service: AccountService = Depends(get_service),
) -> Response:
    try:
        service.delete_account_by_email(email)
    except AccountServiceError as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/accounts/{account_id}", response_model=AccountDto, dependencies=[Depends(require_admin)])
def find_account_by_id(
    account_id: int,
    service: AccountService = Depends(get_service),
) -> AccountDto:
    try:
        account = service.find_account_by_id(account_id)
    except AccountServiceError as exc:
        raise http_error(exc) from exc
    return account_to_dto(account)


@router.put("/accounts/{account_id}", response_model=AccountDto, dependencies=[Depends(require_admin)])
def update_account(
    account_id: int,
    payload: AccountUpdateDto,
    service: AccountService = Depends(get_service),
) -> AccountDto:
    try:
        account = service.update_account(account_id, _update_from_dto(payload))
    except AccountServiceError as exc:
        raise http_error(exc) from exc
    return account_to_dto(account)


@router.delete(
    "/accounts/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_account_by_id(
    account_id: int,
    service: AccountService = Depends(get_service),
) -> Response:
    try:
        service.delete_account_by_id(account_id)
    except AccountServiceError as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
