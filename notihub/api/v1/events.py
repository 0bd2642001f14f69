"""
FastAPI route: persisted event history and live change feed.

Endpoints:
    GET    /api/v1/events                   — filtered, paginated history
    GET    /api/v1/events/stream            — server-sent change notifications
    GET    /api/v1/events/trace/{trace_id}  — most recent record for a trace
    GET    /api/v1/events/{id}              — one record
    DELETE /api/v1/events/{id}              — remove one record

All endpoints answer 503 PERSISTENCE_DISABLED when the store is off.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from notihub.api.deps import get_event_store
from notihub.api.schemas import EventPageOut, EventRecordOut
from notihub.core.errors import NotFoundError
from notihub.dispatch.event_store import EventStore
from notihub.dispatch.models import EventFilters, EventType, Severity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/events", tags=["events"])

KEEPALIVE_SECONDS = 15.0


@router.get("", response_model=EventPageOut, summary="Query event history")
async def list_events(
    source: Optional[str] = Query(None, examples=["ci-pipeline"]),
    event_type: Optional[EventType] = Query(None),
    severity: Optional[Severity] = Query(None),
    since: Optional[datetime] = Query(None, description="timestamp >= since"),
    until: Optional[datetime] = Query(None, description="timestamp < until"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    store: EventStore = Depends(get_event_store),
):
    page = await store.query(EventFilters(
        source=source,
        event_type=event_type,
        severity=severity,
        timestamp_gte=since,
        timestamp_lt=until,
        limit=limit,
        offset=offset,
    ))
    return page.to_dict()


# ---------------------------------------------------------------------------
# Live feed (must be registered before /{record_id})
# ---------------------------------------------------------------------------

async def _sse_stream(request: Request, store: EventStore) -> AsyncIterator[str]:
    queue = store.subscribe()
    logger.info("Stream subscriber connected (%d active)", store.subscriber_count)
    try:
        yield ": connected\n\n"
        while not await request.is_disconnected():
            try:
                note = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield f"event: {note.kind.value}\ndata: {json.dumps(note.to_dict())}\n\n"
    finally:
        store.unsubscribe(queue)
        logger.info("Stream subscriber disconnected (%d active)", store.subscriber_count)


@router.get("/stream", summary="Server-sent events for stored/deleted records")
async def stream_events(request: Request, store: EventStore = Depends(get_event_store)):
    return StreamingResponse(
        _sse_stream(request, store),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get(
    "/trace/{trace_id}",
    response_model=EventRecordOut,
    summary="Most recent record for a trace id",
)
async def get_event_by_trace(trace_id: str, store: EventStore = Depends(get_event_store)):
    record = await store.get_by_trace_id(trace_id)
    if record is None:
        raise NotFoundError("Event", trace_id=trace_id)
    return record.to_dict()


@router.get("/{record_id}", response_model=EventRecordOut, summary="Get one record")
async def get_event(record_id: int, store: EventStore = Depends(get_event_store)):
    record = await store.get_by_id(record_id)
    if record is None:
        raise NotFoundError("Event", id=record_id)
    return record.to_dict()


@router.delete("/{record_id}", summary="Delete one record")
async def delete_event(record_id: int, store: EventStore = Depends(get_event_store)):
    if not await store.delete(record_id):
        raise NotFoundError("Event", id=record_id)
    return {"deleted": True, "id": record_id}
