"""Utilities for issuing and validating account access tokens."""

from __future__ import annotations

import hashlib
import secrets
import time
from typing import Any, Iterable

import jwt

from ..config import get_settings

DEFAULT_SCOPES = ("read", "write")


def issue_access_token(
    *,
    subject: str,
    account_id: int,
    authorities: Iterable[str],
    scopes: list[str] | None = None,
) -> tuple[str, int]:
    """Sign an HS256 access token for an authenticated account.

    Parameters
    ----------
    subject:
        Account email embedded in the token `sub` claim.
    account_id:
        Numeric account identifier, carried for downstream services.
    authorities:
        Granted authorities (``ROLE_*``) checked by resource servers.
    scopes:
        Optional scope list; defaults to the OAuth2 ``read`` and ``write`` scopes.

    Returns
    -------
    tuple[str, int]
        The encoded token and its lifetime in seconds.
    """

    settings = get_settings()
    now = int(time.time())
    expires_in = settings.jwt_ttl_seconds
    payload: dict[str, Any] = {
        "iss": settings.jwt_issuer,
        "sub": subject,
        "account_id": account_id,
        "authorities": sorted(authorities),
        "scopes": scopes or list(DEFAULT_SCOPES),
        "iat": now,
        "exp": now + expires_in,
    }

    token = jwt.encode(payload, settings.jwt_secret, algorithm="HS256")
    return token, expires_in


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify signature, issuer and expiry and return the claims.

    Raises
    ------
    jwt.PyJWTError
        When verification fails for any reason.
    """

    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=["HS256"],
        issuer=settings.jwt_issuer,
        options={"require": ["exp", "iss", "sub"]},
    )


def generate_refresh_token() -> tuple[str, str]:
    """Return a new opaque refresh token and the digest to persist."""
    token = secrets.token_urlsafe(48)
    return token, hash_refresh_token(token)


def hash_refresh_token(token: str) -> str:
    """Only this digest is stored, never the token itself."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
