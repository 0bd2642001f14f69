"""
FastAPI application entry point.

Run with:
    uvicorn notihub.main:app --port 8787

Or:
    python -m notihub
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notihub.api import health
from notihub.api.v1 import channels, events, notify, webhooks
from notihub.bootstrap import build_hub
from notihub.core.config import Settings, get_settings
from notihub.core.errors import register_error_handlers
from notihub.core.logging_config import setup_logging

logger = logging.getLogger(__name__)

_ROUTERS = (health.router, notify.router, events.router, channels.router, webhooks.router)


def create_app(settings: Optional[Settings] = None, **hub_overrides: Any) -> FastAPI:
    """
    Build the application.

    `hub_overrides` are forwarded to build_hub() (channels, storage,
    adapters), which is how tests inject doubles.
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL, json_output=settings.is_production)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        hub = await build_hub(settings, **hub_overrides)
        app.state.hub = hub
        logger.info(
            "%s v%s up [%s] with channels %s",
            settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
            hub.dispatcher.channel_names,
        )
        try:
            yield
        finally:
            await hub.close()
            logger.info("%s stopped", settings.APP_NAME)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=(
            "Notification dispatch hub. Accepts normalized events, drops "
            "duplicates, fans out to configured channels with retry and "
            "backoff, and records every dispatch outcome with a live feed."
        ),
        lifespan=lifespan,
    )

    origins = ["*"] if settings.CORS_ALLOW_ALL else settings.CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app, debug=settings.DEBUG)

    for router in _ROUTERS:
        app.include_router(router)
    return app


app = create_app()
