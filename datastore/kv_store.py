from __future__ import annotations

import logging
import time
from functools import lru_cache
from threading import Lock
from typing import Callable, Dict, Optional, Protocol, Set, Tuple

import redis

from settings import get_settings

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Raised when the key-value backend cannot complete an operation."""


class KeyValueStore(Protocol):

    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    def get(self, key: str) -> Optional[str]: ...

    def exists(self, key: str) -> bool: ...

    def scan_keys(self, prefix: str) -> Set[str]: ...

    def close(self) -> None: ...


class InMemoryKeyValueStore:
    """Thread-safe in-process stand-in for Redis with per-key expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._items: Dict[str, Tuple[str, Optional[float]]] = {}
        self._clock = clock
        self._lock = Lock()

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds > 0 else None
        with self._lock:
            self._items[key] = (value, expires_at)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live_entry(key)
            return entry[0] if entry is not None else None

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def scan_keys(self, prefix: str) -> Set[str]:
        with self._lock:
            return {
                key
                for key in list(self._items)
                if key.startswith(prefix) and self._live_entry(key) is not None
            }

    def ttl(self, key: str) -> Optional[float]:
        """Seconds until ``key`` expires, or ``None`` if missing or persistent."""

        with self._lock:
            entry = self._live_entry(key)
            if entry is None or entry[1] is None:
                return None
            return entry[1] - self._clock()

    def close(self) -> None:
        with self._lock:
            self._items.clear()

    def _live_entry(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        # Caller holds the lock. Expired entries are purged on access.
        entry = self._items.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._items[key]
            return None
        return entry


class RedisKeyValueStore:
    """Key-value store backed by a Redis server."""

    def __init__(self, url: str, client: Optional[redis.Redis] = None) -> None:
        self.url = url
        self._client = client or redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self._client.set(key, value, ex=ttl_seconds if ttl_seconds > 0 else None)
        except redis.RedisError as exc:
            raise StoreError(f"Failed to write key {key!r}: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        try:
            value = self._client.get(key)
        except redis.RedisError as exc:
            raise StoreError(f"Failed to read key {key!r}: {exc}") from exc
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def exists(self, key: str) -> bool:
        try:
            return bool(self._client.exists(key))
        except redis.RedisError as exc:
            raise StoreError(f"Failed to check key {key!r}: {exc}") from exc

    def scan_keys(self, prefix: str) -> Set[str]:
        # SCAN instead of KEYS so large keyspaces do not block the server.
        try:
            keys = self._client.scan_iter(match=f"{prefix}*", count=500)
            return {key.decode("utf-8") if isinstance(key, bytes) else key for key in keys}
        except redis.RedisError as exc:
            raise StoreError(f"Failed to scan keys with prefix {prefix!r}: {exc}") from exc

    def close(self) -> None:
        try:
            self._client.close()
        except redis.RedisError as exc:
            logger.warning("Error closing Redis connection: %s", exc)


@lru_cache
def build_default_store(backend: Optional[str] = None) -> KeyValueStore:
    settings = get_settings()
    selected = settings.store_backend if backend is None else backend
    if selected == "redis":
        logger.info("Using Redis key-value store at %s", settings.redis_url.split("@")[-1])
        return RedisKeyValueStore(settings.redis_url)
    return InMemoryKeyValueStore()
