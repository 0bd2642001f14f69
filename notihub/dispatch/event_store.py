"""
event_store.py — Persistence of dispatch outcomes + live change feed.

The store turns (Event, [SendResult]) into an EventRecord, writes it through
an EventStorage, and only after the durable write succeeds notifies every
subscriber. Subscribers receive StoreNotification objects on their own
asyncio.Queue, so a slow subscriber never blocks the store or its peers:
when a subscriber's queue is full the notification is dropped for that
subscriber and a warning is logged.

Status derivation:

    results            status
    ───────            ──────
    []                 failed
    all unsuccessful   failed
    all successful     success
    otherwise          partial
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence

from notihub.dispatch.models import (
    Event,
    EventFilters,
    EventRecord,
    EventStatus,
    PaginatedResult,
    SendResult,
)
from notihub.dispatch.storage import EVENTS_TABLE, EventStorage

logger = logging.getLogger(__name__)

DEFAULT_SUBSCRIBER_QUEUE_SIZE = 100


def determine_status(results: Sequence[SendResult]) -> EventStatus:
    """Aggregate per-channel outcomes into a single status."""
    if not results:
        return EventStatus.FAILED
    successes = sum(1 for r in results if r.success)
    if successes == 0:
        return EventStatus.FAILED
    if successes == len(results):
        return EventStatus.SUCCESS
    return EventStatus.PARTIAL


class ChangeKind(str, Enum):
    CREATED = "created"
    DELETED = "deleted"


@dataclass(frozen=True)
class StoreNotification:
    kind: ChangeKind
    record_id: int
    record: Optional[EventRecord] = None

    def to_dict(self) -> dict:
        d = {"kind": self.kind.value, "record_id": self.record_id}
        if self.record is not None:
            d["record"] = self.record.to_dict()
        return d


class EventStore:
    """Owns EventRecords: derivation, persistence, lookup and change feed."""

    def __init__(
        self,
        storage: EventStorage,
        *,
        subscriber_queue_size: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE,
    ) -> None:
        self._storage = storage
        self._queue_size = subscriber_queue_size
        self._subscribers: List[asyncio.Queue] = []

    # ── Subscriptions ──

    def subscribe(self) -> "asyncio.Queue[StoreNotification]":
        """Create a subscriber queue; call unsubscribe() when done."""
        q: "asyncio.Queue[StoreNotification]" = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.append(q)
        return q

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        try:
            self._subscribers.remove(queue)
        except ValueError:
            pass

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _publish(self, notification: StoreNotification) -> None:
        for q in list(self._subscribers):
            try:
                q.put_nowait(notification)
            except asyncio.QueueFull:
                logger.warning(
                    "Subscriber queue full; dropped %s notification for record %d",
                    notification.kind.value, notification.record_id,
                )

    # ── Writes ──

    async def save(self, event: Event, results: Sequence[SendResult]) -> EventRecord:
        """
        Persist one dispatch outcome.

        Raises DuplicateEventError if a record already exists for the
        event's (trace_id, event_type); no notification is sent then.
        """
        data = {
            "trace_id": event.trace_id,
            "source": event.source,
            "event_type": event.event_type.value,
            "severity": event.severity.value,
            "title": event.title,
            "summary": event.summary,
            "context": event.plain_context(),
            "actions": [a.to_dict() for a in event.actions] if event.actions else None,
            "timestamp": event.timestamp,
            "channels_sent": [r.channel for r in results],
            "status": determine_status(results).value,
            "created_at": datetime.now(timezone.utc),
        }
        record = await self._storage.insert(EVENTS_TABLE, data)
        logger.info(
            "Stored event %d (%s) status=%s channels=%s",
            record.id, event.trace_id, record.status.value, record.channels_sent,
            extra={"event_id": record.id, "trace_id": event.trace_id},
        )
        self._publish(StoreNotification(ChangeKind.CREATED, record.id, record))
        return record

    async def delete(self, record_id: int) -> bool:
        """Remove a record; returns False when it did not exist."""
        removed = await self._storage.delete(EVENTS_TABLE, {"id": record_id})
        if not removed:
            return False
        self._publish(StoreNotification(ChangeKind.DELETED, record_id))
        return True

    # ── Reads ──

    async def query(self, filters: Optional[EventFilters] = None) -> PaginatedResult:
        return await self._storage.query(EVENTS_TABLE, filters or EventFilters())

    async def get_by_id(self, record_id: int) -> Optional[EventRecord]:
        return await self._storage.find_one(EVENTS_TABLE, {"id": record_id})

    async def get_by_trace_id(self, trace_id: str) -> Optional[EventRecord]:
        """Most recent record for the trace, or None."""
        return await self._storage.find_one(EVENTS_TABLE, {"trace_id": trace_id})
