"""Key-value store for short-lived signup state (set with TTL, get, delete).

Two backends share one interface and hold the same JSON payloads:
MemoryStore for a single process and tests, RedisStore when several app
instances must see the same pending signups. KV_BACKEND selects one.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from functools import lru_cache

import redis

from storefront.config import Settings, get_settings

log = logging.getLogger("uvicorn.error")


class KeyValueStore(ABC):
    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    def purge_expired(self) -> int:
        """Drop expired keys; returns how many were removed."""
        return 0


class MemoryStore(KeyValueStore):
    """Process-local store. Expired keys are dropped on access and by purge_expired()."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._data[key] = (value, self._clock() + ttl_seconds)

    def get(self, key: str) -> str | None:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            value, expires_at = item
            if self._clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, expires_at) in self._data.items() if now >= expires_at]
            for k in expired:
                del self._data[k]
        return len(expired)

    def __len__(self) -> int:
        """Number of live (unexpired) keys."""
        now = self._clock()
        with self._lock:
            return sum(1 for _, expires_at in self._data.values() if now < expires_at)


class RedisStore(KeyValueStore):
    """Redis-backed store; TTL is enforced by Redis (SET ... EX)."""

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._client.set(key, value, ex=ttl_seconds)

    def get(self, key: str) -> str | None:
        value = self._client.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def delete(self, key: str) -> None:
        self._client.delete(key)


def build_store(settings: Settings) -> KeyValueStore:
    if settings.kv_backend == "redis":
        log.info("[Store] Using Redis at %s", settings.redis_url.split("@")[-1])
        return RedisStore.from_url(settings.redis_url)
    log.info("[Store] Using in-memory store (single instance only)")
    return MemoryStore()


@lru_cache
def get_store() -> KeyValueStore:
    return build_store(get_settings())


def run_store_purge_job() -> None:
    """Scheduled: drop expired keys from the in-memory store (no-op for Redis)."""
    removed = get_store().purge_expired()
    if removed:
        log.info("[Store] Purged %d expired key(s).", removed)
