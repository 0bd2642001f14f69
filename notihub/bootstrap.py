"""
NotiHub assembly.

Wires the pipeline from Settings:

    Settings
        -> cache backend            (dedup marks)
        -> DeduplicationGate        (if DEDUP_ENABLED)
        -> RetryPolicy              (RETRY_MAX_ATTEMPTS, or 1 if disabled)
        -> channels                 (ordered, enabled CHANNELS entries)
        -> SQLStorage + EventStore  (if PERSISTENCE_ENABLED)
        -> NotificationDispatcher

A shared httpx.AsyncClient is injected into every webhook channel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx

from notihub.adapters import InputAdapter, default_adapters
from notihub.core.cache import CacheBackend, build_cache
from notihub.core.config import Settings
from notihub.dispatch.channels import Channel, build_channels
from notihub.dispatch.dedup import DeduplicationGate
from notihub.dispatch.dispatcher import NotificationDispatcher
from notihub.dispatch.event_store import EventStore
from notihub.dispatch.retry import RetryConfig, RetryPolicy
from notihub.dispatch.storage import EventStorage, SQLStorage

logger = logging.getLogger(__name__)


@dataclass
class NotiHub:
    """Everything a running service holds on to."""
    settings: Settings
    dispatcher: NotificationDispatcher
    cache: CacheBackend
    channels: List[Channel]
    http_client: httpx.AsyncClient
    dedup: Optional[DeduplicationGate] = None
    storage: Optional[EventStorage] = None
    event_store: Optional[EventStore] = None
    adapters: Dict[str, InputAdapter] = field(default_factory=dict)

    async def close(self) -> None:
        await self.dispatcher.drain()
        for channel in self.channels:
            await channel.close()
        await self.http_client.aclose()
        if self.storage is not None:
            await self.storage.close()
        await self.cache.close()
        logger.info("NotiHub shut down")


async def build_hub(
    settings: Settings,
    *,
    channels: Optional[List[Channel]] = None,
    storage: Optional[EventStorage] = None,
    adapters: Optional[Dict[str, InputAdapter]] = None,
) -> NotiHub:
    """Assemble (and initialise storage for) a NotiHub from settings.

    `channels` and `storage` override the configured ones, which tests and
    embedding applications use to inject their own implementations.
    """
    http_client = httpx.AsyncClient(timeout=30.0)
    cache = build_cache(settings)
    try:
        return await _assemble(settings, http_client, cache, channels, storage, adapters)
    except Exception:
        logger.error("NotiHub startup failed; releasing HTTP client and cache")
        await http_client.aclose()
        await cache.close()
        raise


async def _assemble(
    settings: Settings,
    http_client: httpx.AsyncClient,
    cache: CacheBackend,
    channels: Optional[List[Channel]],
    storage: Optional[EventStorage],
    adapters: Optional[Dict[str, InputAdapter]],
) -> NotiHub:
    dedup = (
        DeduplicationGate(cache, ttl=settings.DEDUP_TTL)
        if settings.DEDUP_ENABLED else None
    )
    retry = RetryPolicy(RetryConfig(
        max_attempts=settings.effective_max_attempts,
        backoff=settings.RETRY_BACKOFF,
    ))

    if channels is None:
        channels = build_channels(settings.CHANNELS, http_client)

    event_store: Optional[EventStore] = None
    if settings.PERSISTENCE_ENABLED:
        if storage is None:
            storage = SQLStorage(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
        await storage.init()
        event_store = EventStore(storage, subscriber_queue_size=settings.SUBSCRIBER_QUEUE_SIZE)

    dispatcher = NotificationDispatcher(
        channels, retry, dedup=dedup, event_store=event_store,
    )

    logger.info(
        "NotiHub ready: %d channel(s), dedup=%s (ttl=%ds), retry=%d attempt(s) %s, persistence=%s",
        len(channels),
        "on" if dedup else "off",
        settings.DEDUP_TTL,
        settings.effective_max_attempts,
        list(settings.RETRY_BACKOFF),
        "on" if event_store else "off",
    )

    return NotiHub(
        settings=settings,
        dispatcher=dispatcher,
        cache=cache,
        channels=list(channels),
        http_client=http_client,
        dedup=dedup,
        storage=storage if event_store is not None else None,
        event_store=event_store,
        adapters=adapters if adapters is not None else default_adapters(),
    )
