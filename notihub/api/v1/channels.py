"""
FastAPI route: channel inventory and probes.

Endpoints:
    GET  /api/v1/channels               — configured channels with health
    POST /api/v1/channels/{name}/test   — probe one channel
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from notihub.api.deps import get_hub
from notihub.api.schemas import ChannelStatusOut, ChannelTestResponse
from notihub.bootstrap import NotiHub

router = APIRouter(prefix="/api/v1/channels", tags=["channels"])


@router.get("", response_model=List[ChannelStatusOut], summary="List channels with health")
async def list_channels(hub: NotiHub = Depends(get_hub)):
    statuses = await hub.dispatcher.get_channel_statuses()
    return [
        {
            "name": channel.name,
            "type": channel.type.value,
            "event_types": sorted(t.value for t in channel.supported_event_types()),
            "healthy": statuses[channel.name].healthy,
            "error": statuses[channel.name].error,
        }
        for channel in hub.dispatcher.channels
    ]


@router.post(
    "/{name}/test",
    response_model=ChannelTestResponse,
    summary="Probe one channel",
    description="Unknown names answer 404 CHANNEL_NOT_FOUND.",
)
async def probe_channel(name: str, hub: NotiHub = Depends(get_hub)):
    healthy = await hub.dispatcher.test_channel(name)
    return {"channel": name, "healthy": healthy}
