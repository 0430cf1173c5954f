from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the gateway process."""

    app_name: str = "gateway-service"
    version: str = "0.1.0"
    http_host: str = os.getenv("HTTP_HOST", "0.0.0.0")
    http_port: int = int(os.getenv("HTTP_PORT", "8080"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    account_service_url: str = os.getenv("ACCOUNT_SERVICE_URL", "http://account-service:8000")
    proxy_timeout_seconds: float = float(os.getenv("PROXY_TIMEOUT_SECONDS", "10"))
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    jwt_issuer: str = os.getenv("JWT_ISSUER", "isr.account")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance for the running process."""
    return Settings()
