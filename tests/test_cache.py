"""
test_cache.py — Tests for the cache backends.

Run with:
    pytest tests/test_cache.py -v
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from notihub.core.cache import MemoryCache, RedisCache, build_cache
from notihub.core.config import Settings
from notihub.core.errors import ConfigurationError


# ═══════════════════════════════════════════════════════════════════════════
# In-memory backend
# ═══════════════════════════════════════════════════════════════════════════

class TestMemoryCache:

    @pytest.mark.asyncio
    async def test_set_then_get(self, clock):
        cache = MemoryCache(clock=clock)
        await cache.set("k", {"v": 1})
        assert await cache.get("k") == {"v": 1}
        assert await cache.has("k")

    @pytest.mark.asyncio
    async def test_missing_key(self, clock):
        cache = MemoryCache(clock=clock)
        assert await cache.get("nope") is None
        assert not await cache.has("nope")

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, clock):
        cache = MemoryCache(clock=clock)
        await cache.set("k", True, ttl=10)
        clock.advance(9.9)
        assert await cache.has("k")
        clock.advance(0.1)
        assert not await cache.has("k")

    @pytest.mark.asyncio
    async def test_default_ttl_applies(self, clock):
        cache = MemoryCache(default_ttl=5, clock=clock)
        await cache.set("k", True)
        clock.advance(5)
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_lru_eviction(self, clock):
        cache = MemoryCache(max_entries=2, clock=clock)
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.get("a")  # a is now most recent
        await cache.set("c", 3)
        assert await cache.keys() == ["a", "c"]

    @pytest.mark.asyncio
    async def test_keys_skip_expired(self, clock):
        cache = MemoryCache(clock=clock)
        await cache.set("short", 1, ttl=1)
        await cache.set("long", 2, ttl=100)
        clock.advance(2)
        assert await cache.keys() == ["long"]
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, clock):
        cache = MemoryCache(clock=clock)
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.delete("a")
        await cache.delete("missing")
        assert await cache.keys() == ["b"]
        await cache.clear()
        assert len(cache) == 0

    def test_invalid_size_rejected(self):
        with pytest.raises(ValueError):
            MemoryCache(max_entries=0)


# ═══════════════════════════════════════════════════════════════════════════
# Redis backend (client mocked)
# ═══════════════════════════════════════════════════════════════════════════

def _redis_client() -> MagicMock:
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock()
    client.exists = AsyncMock(return_value=0)
    client.delete = AsyncMock()
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client


class TestRedisCache:

    @pytest.mark.asyncio
    async def test_set_prefixes_key_and_serialises(self):
        client = _redis_client()
        cache = RedisCache(client, prefix="nh:", default_ttl=30)
        await cache.set("dedup:t:error", True, ttl=60)
        client.set.assert_awaited_once_with("nh:dedup:t:error", "true", ex=60)

    @pytest.mark.asyncio
    async def test_set_uses_default_ttl(self):
        client = _redis_client()
        cache = RedisCache(client, prefix="nh:", default_ttl=30)
        await cache.set("k", 1)
        assert client.set.await_args.kwargs["ex"] == 30

    @pytest.mark.asyncio
    async def test_get_decodes_json(self):
        client = _redis_client()
        client.get.return_value = json.dumps({"a": 1})
        cache = RedisCache(client, prefix="nh:")
        assert await cache.get("k") == {"a": 1}
        client.get.assert_awaited_once_with("nh:k")

    @pytest.mark.asyncio
    async def test_has_uses_exists(self):
        client = _redis_client()
        client.exists.return_value = 1
        assert await RedisCache(client).has("k")

    @pytest.mark.asyncio
    async def test_keys_strip_prefix_and_clear_deletes_namespace(self):
        client = _redis_client()

        async def scan_iter(match):
            assert match == "nh:*"
            for key in ("nh:a", "nh:b"):
                yield key

        client.scan_iter = scan_iter
        cache = RedisCache(client, prefix="nh:")
        assert await cache.keys() == ["a", "b"]
        await cache.clear()
        client.delete.assert_awaited_once_with("nh:a", "nh:b")

    @pytest.mark.asyncio
    async def test_ping_and_close(self):
        client = _redis_client()
        cache = RedisCache(client)
        assert await cache.ping()
        await cache.close()
        client.aclose.assert_awaited_once()


class TestBuildCache:

    def test_memory_backend(self):
        cache = build_cache(Settings(CACHE_BACKEND="memory", CACHE_MAX_ENTRIES=5))
        assert isinstance(cache, MemoryCache)

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            build_cache(Settings(CACHE_BACKEND="memcached"))
