"""
FastAPI route: producer webhooks.

    POST /webhooks/{adapter}

The raw JSON body is handed to the named InputAdapter, and the resulting
event goes through the normal notify() path (dedup, fan-out, history).
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from notihub.api.deps import get_hub
from notihub.api.schemas import NotifyResponse
from notihub.bootstrap import NotiHub
from notihub.core.errors import NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/{adapter}", response_model=NotifyResponse, summary="Ingest a producer payload")
async def ingest(
    adapter: str,
    payload: Dict[str, Any] = Body(...),
    hub: NotiHub = Depends(get_hub),
):
    handler = hub.adapters.get(adapter)
    if handler is None:
        raise NotFoundError("Adapter", adapter=adapter, available=sorted(hub.adapters))

    event = handler.parse(payload)
    logger.info("Adapter %s produced event %s", adapter, event.trace_id)
    results = await hub.dispatcher.notify(event)
    return {
        "trace_id": event.trace_id,
        "results": [r.to_dict() for r in results],
    }
