"""Caches for the distinct-login-dates listing.

Entries are keyed by page request and are all dropped whenever audit rows are
added or removed; a TTL bounds staleness when writes happen on another replica.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import date
from threading import Lock
from typing import Protocol

from redis import Redis, RedisError

from .domain.filters import Page

logger = logging.getLogger(__name__)


class LoginDatesCache(Protocol):
    def get(self, page: Page) -> list[date] | None: ...

    def set(self, page: Page, dates: list[date]) -> None: ...

    def clear(self) -> None: ...


def _page_key(page: Page) -> str:
    return f"{page.number}:{'all' if page.size is None else page.size}"


class NullLoginDatesCache:
    """Cache that never holds anything."""

    def get(self, page: Page) -> list[date] | None:
        return None

    def set(self, page: Page, dates: list[date]) -> None:
        pass

    def clear(self) -> None:
        pass


class InMemoryLoginDatesCache:
    """Thread-safe per-process cache with a fixed time-to-live."""

    def __init__(self, ttl_seconds: float) -> None:
        """Initialise the TTL and the entry store."""
        self._ttl = ttl_seconds
        self._entries: dict[str, tuple[float, list[date]]] = {}
        self._lock = Lock()

    def get(self, page: Page) -> list[date] | None:
        """Return cached dates for ``page`` unless missing or expired."""
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(_page_key(page))
            if entry is None:
                return None
            stored_at, dates = entry
            if now - stored_at > self._ttl:
                del self._entries[_page_key(page)]
                return None
            return list(dates)

    def set(self, page: Page, dates: list[date]) -> None:
        with self._lock:
            self._entries[_page_key(page)] = (time.monotonic(), list(dates))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisLoginDatesCache:
    """Cache shared by every replica, stored as JSON strings under a key prefix.

    Redis failures degrade to cache misses: the store stays the source of truth.
    """

    def __init__(self, client: Redis, *, ttl_seconds: int, key_prefix: str = "login-dates") -> None:
        """Store the Redis client, entry TTL and key namespace."""
        self._client = client
        self._ttl = ttl_seconds
        self._key_prefix = key_prefix

    def _key(self, page: Page) -> str:
        return f"{self._key_prefix}:{_page_key(page)}"

    def get(self, page: Page) -> list[date] | None:
        try:
            raw = self._client.get(self._key(page))
        except RedisError as exc:
            logger.warning("login dates cache read failed, querying the store: %s", exc)
            return None
        if raw is None:
            return None
        return [date.fromisoformat(value) for value in json.loads(raw)]

    def set(self, page: Page, dates: list[date]) -> None:
        payload = json.dumps([value.isoformat() for value in dates])
        try:
            self._client.setex(self._key(page), self._ttl, payload)
        except RedisError as exc:
            logger.warning("login dates cache write failed: %s", exc)

    def clear(self) -> None:
        """Delete every entry under the key prefix."""
        try:
            keys = list(self._client.scan_iter(match=f"{self._key_prefix}:*"))
            if keys:
                self._client.delete(*keys)
        except RedisError as exc:
            # Entries left behind still expire after the TTL.
            logger.warning("login dates cache eviction failed: %s", exc)
