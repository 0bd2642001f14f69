"""
Key/value cache layer with per-key TTL.

Provides:
    • CacheBackend — async contract (get / set / has / delete / clear / keys)
    • MemoryCache  — in-process LRU-bounded store with monotonic expiry
    • RedisCache   — redis.asyncio client with JSON values and a key prefix
    • build_cache  — pick a backend from Settings

`set` without a TTL uses the backend's default TTL. The cache is shared
by concurrent dispatches; individual operations never lose updates, but a
has-then-set sequence is not atomic.

Usage:
    cache = MemoryCache(max_entries=1000, default_ttl=60)
    await cache.set("dedup:abc:error", True, ttl=60)
    assert await cache.has("dedup:abc:error")
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Callable, List, Optional, Tuple

from notihub.core.config import Settings
from notihub.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Async key/value store with optional per-key TTL (seconds)."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the value or None on miss / expiry."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a value; ttl=None falls back to the backend default."""

    @abstractmethod
    async def has(self, key: str) -> bool:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...

    @abstractmethod
    async def keys(self) -> List[str]:
        ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


# ═══════════════════════════════════════════════════════════════════════════
# In-memory backend
# ═══════════════════════════════════════════════════════════════════════════

class MemoryCache(CacheBackend):
    """
    LRU-bounded in-process cache.

    Entries are stored as (value, expires_at) against a monotonic clock.
    Expired entries are purged lazily on access and on every write. When
    `max_entries` is exceeded the least recently used entry is evicted.
    """

    def __init__(
        self,
        *,
        max_entries: int = 1000,
        default_ttl: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._max_entries = max_entries
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[Any, float]]" = OrderedDict()

    def _alive(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry[1] <= self._clock():
            del self._entries[key]
            return False
        return True

    def _purge_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (_, exp) in self._entries.items() if exp <= now]:
            del self._entries[key]

    async def get(self, key: str) -> Optional[Any]:
        if not self._alive(key):
            return None
        self._entries.move_to_end(key)
        return self._entries[key][0]

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        seconds = ttl if ttl else self._default_ttl
        self._purge_expired()
        self._entries[key] = (value, self._clock() + seconds)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache evicted %s (max_entries=%d)", evicted, self._max_entries)

    async def has(self, key: str) -> bool:
        return self._alive(key)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear(self) -> None:
        self._entries.clear()

    async def keys(self) -> List[str]:
        self._purge_expired()
        return list(self._entries.keys())

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._entries)


# ═══════════════════════════════════════════════════════════════════════════
# Redis backend
# ═══════════════════════════════════════════════════════════════════════════

class RedisCache(CacheBackend):
    """
    Redis-backed cache shared across processes.

    All keys are namespaced with `prefix`; `keys()` returns them without the
    prefix and `clear()` only removes keys inside the namespace.
    """

    def __init__(
        self,
        client: Any,
        *,
        prefix: str = "notihub:",
        default_ttl: int = 60,
    ) -> None:
        self._client = client
        self._prefix = prefix
        self._default_ttl = default_ttl

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisCache":
        import redis.asyncio as aioredis

        client = aioredis.from_url(url, encoding="utf-8", decode_responses=True)
        logger.info("Redis cache configured: %s", url.split("@")[-1])
        return cls(client, **kwargs)

    def _k(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        raw = await self._client.get(self._k(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        await self._client.set(
            self._k(key),
            json.dumps(value, default=str),
            ex=ttl or self._default_ttl,
        )

    async def has(self, key: str) -> bool:
        return bool(await self._client.exists(self._k(key)))

    async def delete(self, key: str) -> None:
        await self._client.delete(self._k(key))

    async def _scan(self, pattern: str) -> List[str]:
        found = []
        async for key in self._client.scan_iter(match=f"{self._prefix}{pattern}"):
            found.append(key)
        return found

    async def clear(self) -> None:
        found = await self._scan("*")
        if found:
            await self._client.delete(*found)
        logger.info("Redis cache cleared %d key(s) under %s", len(found), self._prefix)

    async def keys(self) -> List[str]:
        return [k[len(self._prefix):] for k in await self._scan("*")]

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis connection closed")


def build_cache(settings: Settings) -> CacheBackend:
    """Instantiate the configured cache backend."""
    backend = settings.CACHE_BACKEND.lower()
    if backend == "memory":
        return MemoryCache(
            max_entries=settings.CACHE_MAX_ENTRIES,
            default_ttl=settings.CACHE_DEFAULT_TTL,
        )
    if backend == "redis":
        return RedisCache.from_url(
            settings.REDIS_URL,
            prefix=settings.REDIS_KEY_PREFIX,
            default_ttl=settings.CACHE_DEFAULT_TTL,
        )
    raise ConfigurationError(
        f"Unknown cache backend '{settings.CACHE_BACKEND}'",
        supported=["memory", "redis"],
    )
