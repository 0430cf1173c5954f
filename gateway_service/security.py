"""Access rules for paths routed through the gateway and bearer-token verification."""

from __future__ import annotations

from enum import Enum
from typing import Any

import jwt

from .config import get_settings

ROLE_ADMIN = "ROLE_ADMIN"


class Access(str, Enum):
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"


# First matching prefix wins; unmatched paths need a valid token.
ACCESS_RULES: tuple[tuple[str, Access], ...] = (
    ("/healthz", Access.PUBLIC),
    ("/metrics", Access.PUBLIC),
    ("/docs", Access.PUBLIC),
    ("/openapi.json", Access.PUBLIC),
    ("/account/v1/oauth", Access.PUBLIC),
    ("/admin", Access.ADMIN),
)


def _covers(prefix: str, path: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def has_dot_segments(path: str) -> bool:
    """True when ``path`` contains ``.`` or ``..`` segments, which upstream URL parsing would resolve."""
    return any(segment in {".", ".."} for segment in path.split("/"))


def access_for(path: str) -> Access:
    """Resolve the access level required for a request path."""
    for prefix, access in ACCESS_RULES:
        if _covers(prefix, path):
            return access
    return Access.AUTHENTICATED


def decode_bearer_token(token: str) -> dict[str, Any]:
    """Verify a token minted by the account service.

    Raises
    ------
    jwt.PyJWTError
        When the signature, issuer or expiry does not check out.
    """
    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=["HS256"],
        issuer=settings.jwt_issuer,
        options={"require": ["exp", "iss", "sub"]},
    )
