"""FastAPI dependencies: service lookup and bearer-token authorization."""

from __future__ import annotations

from dataclasses import dataclass

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..domain.audit_service import LoginAuditService
from ..domain.errors import Forbidden, Unauthorized
from ..domain.service import AccountService
from ..security.tokens import decode_access_token
from .errors import http_error

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller as described by a verified access token."""

    email: str
    account_id: int
    authorities: frozenset[str]


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def get_login_audit_service(request: Request) -> LoginAuditService:
    """Resolve the `LoginAuditService` stored on the FastAPI application state."""
    service: LoginAuditService = request.app.state.login_audit_service
    return service


def get_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    """Authenticate the request using its Bearer token."""
    if credentials is None:
        raise http_error(Unauthorized("Full authentication is required to access this resource"))
    try:
        claims = decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise http_error(Unauthorized("invalid access token")) from exc
    return Principal(
        email=claims["sub"],
        account_id=int(claims.get("account_id", 0)),
        authorities=frozenset(claims.get("authorities", [])),
    )


def require_roles(*roles: str):
    """Create a dependency admitting callers holding any of ``roles`` (without ``ROLE_``)."""
    accepted = frozenset(f"ROLE_{role}" for role in roles)

    def dep(principal: Principal = Depends(get_principal)) -> Principal:
        if not accepted & principal.authorities:
            raise http_error(Forbidden("Access is denied"))
        return principal

    return dep


require_admin = require_roles("ADMIN")
require_user = require_roles("USER", "ADMIN")
