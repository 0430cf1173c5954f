"""FastAPI application wiring for the edge gateway."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

import jwt
import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

from .app_logging import setup_logger
from .config import get_settings
from .proxy import UpstreamProxy, UpstreamTimeout, UpstreamUnavailable, end_to_end_headers
from .security import ROLE_ADMIN, Access, access_for, decode_bearer_token, has_dot_segments

settings = get_settings()
setup_logger(settings.log_level)
logger = logging.getLogger(__name__)

PROXIED_REQUESTS = Counter(
    "gateway_proxied_requests_total",
    "Requests relayed upstream, by route and upstream status class.",
    labelnames=("route", "status"),
)

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

bearer_scheme = HTTPBearer(auto_error=False)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the upstream client for the app lifecycle."""
    app.state.account_proxy = UpstreamProxy(
        base_url=settings.account_service_url,
        timeout_seconds=settings.proxy_timeout_seconds,
    )
    try:
        yield
    finally:
        await app.state.account_proxy.aclose()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def authorize(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any] | None:
    """Apply the access rule for the request path; returns the token claims if any."""
    path = request.url.path
    if has_dot_segments(path):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="path must not contain dot segments")
    access = access_for(path)
    if access is Access.PUBLIC:
        return None
    if credentials is None:
        raise _unauthorized("Full authentication is required to access this resource")
    try:
        claims = decode_bearer_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise _unauthorized("invalid access token") from exc
    if access is Access.ADMIN and ROLE_ADMIN not in claims.get("authorities", []):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access is denied")
    return claims


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.api_route("/account/{path:path}", methods=PROXY_METHODS, dependencies=[Depends(authorize)])
async def proxy_account(path: str, request: Request) -> Response:
    """Relay the request to the account service with the ``/account`` prefix removed."""
    proxy: UpstreamProxy = request.app.state.account_proxy
    try:
        upstream = await proxy.forward(
            request.method,
            path,
            query=request.url.query,
            headers=request.headers.items(),
            body=await request.body(),
        )
    except UpstreamTimeout as exc:
        logger.warning("account service timed out: %s", exc)
        PROXIED_REQUESTS.labels(route="account", status="timeout").inc()
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="upstream timeout") from exc
    except UpstreamUnavailable as exc:
        logger.warning("account service unreachable: %s", exc)
        PROXIED_REQUESTS.labels(route="account", status="unavailable").inc()
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="upstream unavailable") from exc

    PROXIED_REQUESTS.labels(route="account", status=f"{upstream.status_code // 100}xx").inc()
    response = Response(content=upstream.content, status_code=upstream.status_code)
    for name, value in end_to_end_headers(upstream.headers.multi_items()):
        response.headers.append(name, value)
    return response


@app.api_route("/{path:path}", methods=PROXY_METHODS, dependencies=[Depends(authorize)])
def no_route(path: str) -> Response:
    """Paths without an upstream still pass through the access rules first."""
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="no route")


def run() -> None:
    uvicorn.run(app, host=settings.http_host, port=settings.http_port, log_config=None)
