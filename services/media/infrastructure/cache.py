from __future__ import annotations

import json
import threading
import time
from typing import Any, Callable

from redis import Redis

from services.media.application.interfaces import TTLCache
from services.media.config import MediaConfig


class InMemoryTTLCache(TTLCache):
    """Process-local cache of key -> (value, stored_at)."""

    def __init__(
        self, *, ttl_seconds: int = 300, clock: Callable[[], float] = time.monotonic
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, stored_at = entry
            if self._clock() - stored_at >= self._ttl:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            now = self._clock()
            expired = [
                stale_key
                for stale_key, (_, stored_at) in self._entries.items()
                if now - stored_at >= self._ttl
            ]
            for stale_key in expired:
                del self._entries[stale_key]
            self._entries[key] = (value, now)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)


class RedisTTLCache(TTLCache):
    def __init__(self, client: Redis, *, ttl_seconds: int = 300) -> None:
        self._client = client
        self._ttl = ttl_seconds

    def get(self, key: str) -> Any | None:
        value = self._client.get(key)
        if value is None:
            return None
        return json.loads(value)

    def set(self, key: str, value: Any) -> None:
        self._client.setex(key, self._ttl, json.dumps(value))

    def delete(self, key: str) -> None:
        self._client.delete(key)


def create_redis_connection(config: MediaConfig) -> Redis:
    return Redis(host=config.redis_host, port=config.redis_port, db=config.redis_db)


def create_cache(config: MediaConfig) -> TTLCache:
    if config.cache_backend == "redis":
        return RedisTTLCache(
            create_redis_connection(config), ttl_seconds=config.cache_ttl_seconds
        )
    if config.cache_backend == "memory":
        return InMemoryTTLCache(ttl_seconds=config.cache_ttl_seconds)
    raise ValueError(f"Unknown cache backend: {config.cache_backend}")
