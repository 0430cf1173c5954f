"""FastAPI application wiring for the account service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis
import uvicorn
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.audit_routes import router as audit_router
from .api.routes import router as v1_router
from .app_logging import setup_logger
from .audit_repository import LoginAuditRepository
from .cache import (
    InMemoryLoginDatesCache,
    LoginDatesCache,
    NullLoginDatesCache,
    RedisLoginDatesCache,
)
from .config import Settings, get_settings
from .domain.audit import resolve_zone
from .domain.audit_service import LoginAuditService
from .domain.service import AccountService
from .populate import populate
from .repository import AccountRepository

settings = get_settings()
setup_logger(settings.log_level)
logger = logging.getLogger(__name__)


def build_login_dates_cache(config: Settings) -> LoginDatesCache:
    """Instantiate the configured login-dates cache, preferring Redis when reachable."""
    backend = config.login_dates_cache_backend
    if backend == "none":
        logger.info("login dates cache disabled")
        return NullLoginDatesCache()
    if backend == "redis" and config.redis_url:
        try:
            client = redis.from_url(config.redis_url)
            # fail fast so the fallback happens at startup
            client.ping()
            logger.info("login dates cache configured for redis backend at %s", config.redis_url)
            return RedisLoginDatesCache(client, ttl_seconds=config.login_dates_cache_ttl_seconds)
        except redis.RedisError as exc:
            logger.warning("redis login dates cache unavailable, falling back to in-memory: %s", exc)

    logger.info("login dates cache using in-memory backend")
    return InMemoryLoginDatesCache(ttl_seconds=config.login_dates_cache_ttl_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, cache, services) for the app lifecycle."""
    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    accounts = AccountRepository(pool, statement_timeout_ms=settings.statement_timeout_ms)
    audits = LoginAuditRepository(pool, statement_timeout_ms=settings.statement_timeout_ms)
    if settings.create_schema:
        accounts.create_schema()

    zone = resolve_zone(settings.audit_timezone)
    login_audit_service = LoginAuditService(
        audits, zone=zone, cache=build_login_dates_cache(settings)
    )
    if settings.populate_data:
        populate(accounts, audits, zone=zone)

    app.state.pool = pool
    app.state.login_audit_service = login_audit_service
    app.state.account_service = AccountService(accounts, login_audit_service)
    try:
        yield
    finally:
        pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

# CORS for local frontend dev
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(v1_router)
app.include_router(audit_router)


def run() -> None:
    uvicorn.run(app, host=settings.http_host, port=settings.http_port, log_config=None)
