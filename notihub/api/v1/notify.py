"""
FastAPI route: event dispatch.

Endpoints:
    POST /api/v1/notify            — dedup, fan out to all channels, persist
    POST /api/v1/notify/channels   — send to a named subset (no dedup, no history)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from notihub.api.deps import get_hub
from notihub.api.schemas import NotifyChannelsRequest, NotifyRequest, NotifyResponse
from notihub.bootstrap import NotiHub

router = APIRouter(prefix="/api/v1/notify", tags=["dispatch"])


@router.post(
    "",
    response_model=NotifyResponse,
    summary="Dispatch an event to every configured channel",
    description=(
        "Events repeating a (trace_id, event_type) pair within the dedup "
        "window are dropped and return an empty result list. Persistence "
        "happens after the response is produced."
    ),
)
async def notify(body: NotifyRequest, hub: NotiHub = Depends(get_hub)):
    event = body.to_event()
    results = await hub.dispatcher.notify(event)
    return {
        "trace_id": event.trace_id,
        "results": [r.to_dict() for r in results],
    }


@router.post(
    "/channels",
    response_model=NotifyResponse,
    summary="Dispatch an event to named channels",
)
async def notify_channels(body: NotifyChannelsRequest, hub: NotiHub = Depends(get_hub)):
    event = body.to_event()
    results = await hub.dispatcher.notify_channels(event, body.channels)
    return {
        "trace_id": event.trace_id,
        "results": [r.to_dict() for r in results],
    }
