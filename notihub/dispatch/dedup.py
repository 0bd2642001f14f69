"""
dedup.py — Duplicate suppression in front of the dispatcher.

Key format:
    dedup:{trace_id}:{event_type}   (value: presence marker, TTL = window)

The cache backend is shared, so a Redis-backed gate suppresses repeats
across processes as well.
"""

from __future__ import annotations

import logging

from notihub.core.cache import CacheBackend
from notihub.dispatch.models import Event

logger = logging.getLogger(__name__)

DEFAULT_DEDUP_TTL = 60
KEY_PREFIX = "dedup:"


class DeduplicationGate:
    """Suppresses repeats of a (trace_id, event_type) pair inside a TTL window.

    The first acceptance of a pair writes a presence marker to the cache
    with the configured TTL. While the marker lives, the pair is reported as
    a duplicate; the marker's TTL is never refreshed by a duplicate hit.

    The has-then-set sequence is not atomic: two near-simultaneous identical
    events can both pass. The event store's uniqueness constraint catches
    that case at persistence time.
    """

    def __init__(self, cache: CacheBackend, ttl: int = DEFAULT_DEDUP_TTL) -> None:
        if ttl < 1:
            raise ValueError("dedup ttl must be >= 1 second")
        self._cache = cache
        self._ttl = ttl

    @property
    def ttl(self) -> int:
        return self._ttl

    @staticmethod
    def key_for(event: Event) -> str:
        return f"{KEY_PREFIX}{event.dedup_key}"

    async def is_duplicate(self, event: Event) -> bool:
        """Return True if the pair was already accepted inside the window."""
        key = self.key_for(event)
        if await self._cache.has(key):
            return True
        await self._cache.set(key, True, self._ttl)
        return False

    async def clear(self) -> int:
        """Drop every dedup marker; returns how many were removed."""
        keys = [k for k in await self._cache.keys() if k.startswith(KEY_PREFIX)]
        for key in keys:
            await self._cache.delete(key)
        logger.info("Cleared %d dedup marker(s)", len(keys))
        return len(keys)
