"""Translation of domain failures into HTTP errors."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from ..domain.errors import (
    AccountAlreadyExists,
    AccountNotFound,
    AccountServiceError,
    DataStoreFailure,
    Forbidden,
    GrantedAuthorityNotFound,
    InvalidPage,
    InvalidRange,
    QueryCancelled,
    Unauthorized,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[AccountServiceError], int], ...] = (
    (InvalidRange, status.HTTP_400_BAD_REQUEST),
    (InvalidPage, status.HTTP_400_BAD_REQUEST),
    (Unauthorized, status.HTTP_401_UNAUTHORIZED),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (AccountNotFound, status.HTTP_404_NOT_FOUND),
    (AccountAlreadyExists, status.HTTP_409_CONFLICT),
    (GrantedAuthorityNotFound, status.HTTP_409_CONFLICT),
    (QueryCancelled, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_error(exc: AccountServiceError) -> HTTPException:
    """Map a domain error onto an ``HTTPException`` with a client-safe message."""
    if isinstance(exc, Unauthorized):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    if not isinstance(exc, DataStoreFailure):
        logger.error("unmapped service error: %r", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error")
