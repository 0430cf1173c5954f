"""HTTP route definitions for the login-audit reports (administrators only)."""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from schemas import AccountDto

from ..domain.audit_service import LoginAuditService
from ..domain.errors import AccountServiceError
from .deps import get_login_audit_service, require_admin
from .errors import http_error
from .routes import account_to_dto, page_request

DATE_FORMAT = "%Y%m%d"

router = APIRouter(prefix="/v1/audit", dependencies=[Depends(require_admin)])


def _parse_date(value: str | None, name: str) -> date | None:
    if value is None:
        return None
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{name} must be a yyyyMMdd date",
        ) from exc


@router.get("/dates", response_model=list[date])
def find_dates_with_login_activity(
    page: int | None = Query(default=None, ge=0),
    size: int | None = Query(default=None, ge=0),
    service: LoginAuditService = Depends(get_login_audit_service),
) -> list[date]:
    """Return distinct calendar dates with at least one login, ascending."""
    try:
        return service.find_distinct_login_dates(page_request(page, size))
    except AccountServiceError as exc:
        raise http_error(exc) from exc


@router.get("/accounts", response_model=list[AccountDto])
def find_accounts_with_login_activity(
    start: str | None = Query(default=None, description="yyyyMMdd, inclusive"),
    end: str | None = Query(default=None, description="yyyyMMdd, inclusive"),
    page: int | None = Query(default=None, ge=0),
    size: int | None = Query(default=None, ge=0),
    service: LoginAuditService = Depends(get_login_audit_service),
) -> list[AccountDto]:
    """Return accounts that logged in within the optional date window, ordered by email."""
    try:
        accounts = service.find_accounts_with_login_activity(
            _parse_date(start, "start"),
            _parse_date(end, "end"),
            page_request(page, size),
        )
    except AccountServiceError as exc:
        raise http_error(exc) from exc
    return [account_to_dto(account) for account in accounts]


@router.get("/logins", response_model=dict[str, int])
def find_filtered_login_counts(
    start: str | None = Query(default=None, description="yyyyMMdd, inclusive"),
    end: str | None = Query(default=None, description="yyyyMMdd, inclusive"),
    email: list[str] = Query(default=[]),
    first_name: list[str] = Query(default=[]),
    middle_name: list[str] = Query(default=[]),
    last_name: list[str] = Query(default=[]),
    page: int | None = Query(default=None, ge=0),
    size: int | None = Query(default=None, ge=0),
    service: LoginAuditService = Depends(get_login_audit_service),
) -> dict[str, int]:
    """Return login counts per email for the audit rows matching every supplied filter.

    Repeating a name parameter widens that filter (OR); different parameters narrow
    the result (AND); an omitted parameter does not filter at all.
    """
    try:
        return service.find_filtered_login_counts(
            start=_parse_date(start, "start"),
            end=_parse_date(end, "end"),
            emails=email,
            first_names=first_name,
            middle_names=middle_name,
            last_names=last_name,
            page=page_request(page, size),
        )
    except AccountServiceError as exc:
        raise http_error(exc) from exc
