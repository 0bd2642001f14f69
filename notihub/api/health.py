"""
Service-level routes outside the versioned API.

Endpoints:
    GET /              — service banner with channel and adapter names
    GET /health        — full component report
    GET /health/live   — process is up
    GET /health/ready  — storage and cache only; 503 when either is UNHEALTHY
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from notihub.api.deps import get_hub
from notihub.bootstrap import NotiHub
from notihub.core.health import HealthStatus, run_health_check

router = APIRouter()


@router.get("/", tags=["root"])
async def service_info(hub: NotiHub = Depends(get_hub)):
    s = hub.settings
    return {
        "service": s.APP_NAME,
        "version": s.APP_VERSION,
        "environment": s.ENVIRONMENT,
        "channels": hub.dispatcher.channel_names,
        "adapters": sorted(hub.adapters),
        "docs": "/docs",
    }


@router.get("/health", tags=["health"], summary="Deep health probe")
async def health(hub: NotiHub = Depends(get_hub)):
    return (await run_health_check(hub)).to_dict()


@router.get("/health/live", tags=["health"])
async def live():
    return {"status": "alive"}


@router.get("/health/ready", tags=["health"])
async def ready(hub: NotiHub = Depends(get_hub)):
    report = await run_health_check(hub, include_channels=False)
    status = 503 if report.status is HealthStatus.UNHEALTHY else 200
    return JSONResponse(status_code=status, content=report.to_dict())
