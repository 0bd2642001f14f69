"""Request-scoped accessors for the running NotiHub."""

from __future__ import annotations

from fastapi import Request

from notihub.bootstrap import NotiHub
from notihub.core.errors import PersistenceDisabledError
from notihub.dispatch.event_store import EventStore


def get_hub(request: Request) -> NotiHub:
    return request.app.state.hub


def get_event_store(request: Request) -> EventStore:
    store = get_hub(request).event_store
    if store is None:
        raise PersistenceDisabledError()
    return store
