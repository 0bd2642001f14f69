"""
dispatcher.py — Core notification dispatch orchestration.

This is the central coordinator that:
    1. Receives a normalized Event from a producer adapter or the API
    2. Consults the deduplication gate (duplicates stop here, silently)
    3. Fans the event out to every configured channel, each wrapped in the
       retry policy
    4. Converts per-channel failures into failed SendResults
    5. Hands (event, results) to the event store without waiting for it

═══════════════════════════════════════════════════════════════════════════
ORCHESTRATION FLOW
═══════════════════════════════════════════════════════════════════════════

    ┌─────────────────────┐
    │  notify(event)      │
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐
    │  1. Dedup gate      │  (trace_id, event_type) seen inside TTL?
    │                     │  yes → return []  (nothing sent, nothing stored)
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐
    │  2. Fan-out         │  one task per channel, run concurrently;
    │     with Retry      │  attempts of one channel stay sequential
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐
    │  3. Aggregate       │  SendResult per attempted channel,
    │                     │  in configuration order
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐
    │  4. Persist         │  detached task → EventStore.save();
    │     (detached)      │  failures are logged, never raised
    └─────────────────────┘

═══════════════════════════════════════════════════════════════════════════
FAILURE POLICY
═══════════════════════════════════════════════════════════════════════════

    Failure                        Outcome
    ───────────────────────        ──────────────────────────────────────
    duplicate event                [] returned, not an error
    channel raises / reports       retried; after exhaustion the LAST
      success=False                error becomes SendResult(success=False)
    unknown channel name           ChannelNotFoundError raised to caller
    storage failure                logged; notify result unaffected

A channel whose supported_event_types() excludes the event's type is not
attempted and produces no SendResult.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, List, Optional, Sequence, Set, Union

from notihub.core.errors import ChannelNotFoundError, ChannelSendError, DuplicateEventError
from notihub.core.logging_config import dispatch_context
from notihub.dispatch.channels.base import Channel, ChannelContext
from notihub.dispatch.dedup import DeduplicationGate
from notihub.dispatch.event_store import EventStore
from notihub.dispatch.models import ChannelHealth, Event, SendResult
from notihub.dispatch.retry import RetryPolicy

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Routes events to channels with dedup, retry and detached persistence.

    Parameters
    ----------
    channels : sequence of Channel
        Ordered, configuration-built channel list.
    retry_policy : RetryPolicy
    dedup : DeduplicationGate, optional
        None disables deduplication.
    event_store : EventStore, optional
        None disables persistence.
    """

    def __init__(
        self,
        channels: Sequence[Channel],
        retry_policy: RetryPolicy,
        *,
        dedup: Optional[DeduplicationGate] = None,
        event_store: Optional[EventStore] = None,
    ) -> None:
        names = [c.name for c in channels]
        if len(names) != len(set(names)):
            raise ValueError(f"Channel names must be unique: {names}")
        self._channels: List[Channel] = list(channels)
        self._retry = retry_policy
        self._dedup = dedup
        self._store = event_store
        self._pending_saves: Set[asyncio.Task] = set()

    @property
    def channels(self) -> List[Channel]:
        return list(self._channels)

    @property
    def channel_names(self) -> List[str]:
        return [c.name for c in self._channels]

    # ═══════════════════════════════════════════════════════════════════════
    # Single-Channel Delivery with Retry
    # ═══════════════════════════════════════════════════════════════════════

    async def _deliver(self, channel: Channel, event: Event) -> SendResult:
        """Run one channel's retry sequence to completion; never raises."""
        attempts = 0

        async def attempt() -> SendResult:
            nonlocal attempts
            ctx = ChannelContext(retry_count=attempts)
            attempts += 1
            result = await channel.send(event, ctx)
            if not result.success:
                raise ChannelSendError(channel.name, result.error or "")
            return result

        started = time.perf_counter()
        try:
            result = await self._retry.execute(attempt, channel.name)
        except Exception as exc:
            logger.error(
                "[%s] Failed after %d attempt(s): %s",
                channel.name, attempts, exc,
                extra={"channel": channel.name, "attempt": attempts},
            )
            return SendResult(
                success=False,
                channel=channel.name,
                error=str(exc) or type(exc).__name__,
            )

        logger.info(
            "[%s] Sent successfully: %s",
            channel.name, event.trace_id,
            extra={
                "channel": channel.name,
                "attempt": attempts,
                "duration_ms": (time.perf_counter() - started) * 1000,
            },
        )
        return result

    async def _fan_out(self, channels: Sequence[Channel], event: Event) -> List[SendResult]:
        if not channels:
            return []
        return list(await asyncio.gather(*(self._deliver(c, event) for c in channels)))

    # ═══════════════════════════════════════════════════════════════════════
    # Entry Points
    # ═══════════════════════════════════════════════════════════════════════

    async def notify(self, event: Event) -> List[SendResult]:
        """
        Dispatch `event` to every configured channel.

        Returns an empty list for duplicates (nothing was sent or stored)
        and for a dispatch with no applicable channels.
        """
        with dispatch_context(
            trace_id=event.trace_id,
            source=event.source,
            event_type=event.event_type.value,
        ):
            if self._dedup is not None and await self._dedup.is_duplicate(event):
                logger.info("Skipping duplicate event: %s", event.trace_id)
                return []

            targets = [c for c in self._channels if c.supports(event)]
            skipped = len(self._channels) - len(targets)
            if skipped:
                logger.debug(
                    "%d channel(s) do not accept %s events",
                    skipped, event.event_type.value,
                )

            results = await self._fan_out(targets, event)

            delivered = sum(1 for r in results if r.success)
            logger.info(
                "Dispatched %s: %d/%d channel(s) succeeded",
                event.trace_id, delivered, len(results),
            )

            if self._store is not None:
                self._schedule_save(event, results)

            return results

    async def notify_channels(
        self,
        event: Event,
        channel_names: Union[str, Sequence[str]],
    ) -> List[SendResult]:
        """
        Dispatch to a named subset, bypassing dedup and persistence.

        A bare string names a single channel. Raises ChannelNotFoundError
        before any send if no configured channel matches.
        """
        if isinstance(channel_names, str):
            channel_names = [channel_names]
        wanted = set(channel_names)
        targets = [c for c in self._channels if c.name in wanted]
        if not targets:
            raise ChannelNotFoundError(channel_names)

        with dispatch_context(trace_id=event.trace_id, source=event.source):
            return await self._fan_out(targets, event)

    # ═══════════════════════════════════════════════════════════════════════
    # Health
    # ═══════════════════════════════════════════════════════════════════════

    def _get_channel(self, name: str) -> Channel:
        for channel in self._channels:
            if channel.name == name:
                return channel
        raise ChannelNotFoundError([name])

    async def test_channel(self, name: str) -> bool:
        """Probe one channel; unknown names raise ChannelNotFoundError."""
        channel = self._get_channel(name)
        health = await self._probe(channel)
        return health.healthy

    async def _probe(self, channel: Channel) -> ChannelHealth:
        try:
            return ChannelHealth(healthy=bool(await channel.health_check()))
        except Exception as exc:
            logger.warning("Health check for %s raised: %s", channel.name, exc)
            return ChannelHealth(healthy=False, error=str(exc) or type(exc).__name__)

    async def get_channel_statuses(self) -> Dict[str, ChannelHealth]:
        """Probe every channel concurrently; one failure never fails the call."""
        healths = await asyncio.gather(*(self._probe(c) for c in self._channels))
        return {c.name: h for c, h in zip(self._channels, healths)}

    # ═══════════════════════════════════════════════════════════════════════
    # Detached Persistence
    # ═══════════════════════════════════════════════════════════════════════

    def _schedule_save(self, event: Event, results: List[SendResult]) -> None:
        task = asyncio.create_task(
            self._save(event, list(results)),
            name=f"save-{event.trace_id}",
        )
        # strong reference until done, otherwise the task can be collected
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def _save(self, event: Event, results: List[SendResult]) -> None:
        try:
            await self._store.save(event, results)
        except DuplicateEventError as exc:
            logger.warning("Event not stored: %s", exc.message)
        except Exception:
            logger.exception("Failed to store event %s", event.trace_id)

    @property
    def pending_saves(self) -> int:
        return len(self._pending_saves)

    async def drain(self) -> None:
        """Wait for in-flight saves (shutdown and tests only)."""
        if self._pending_saves:
            await asyncio.gather(*list(self._pending_saves), return_exceptions=True)
