"""
Error types for the dispatch service and their HTTP rendering.

Every domain error derives from NotiHubError and carries an HTTP status, a
stable machine-readable code and optional details. Subclasses declare their
status/code as class attributes; the FastAPI handlers registered by
register_error_handlers() turn any of them into

    {"error": {"code": ..., "message": ..., "status": ..., "details": {...}}}

Which errors reach a caller:
    ValidationError        bad Event / payload input           422
    NotFoundError          missing record or adapter           404
    ChannelNotFoundError   notify_channels / test_channel      404
    PersistenceDisabled    history asked for, store is off     503
    ConfigurationError     bad settings at startup             500

ChannelSendError and StorageError stay inside the dispatcher: the first is
turned into a failed SendResult, the second is logged by the detached save.

Usage:
    from notihub.core.errors import ChannelNotFoundError

    raise ChannelNotFoundError(["slack"])
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, ClassVar, Dict, Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class NotiHubError(Exception):
    """Root of the hierarchy; unknown failures render as 500 INTERNAL_ERROR."""

    status_code: ClassVar[int] = 500
    error_code: ClassVar[str] = "INTERNAL_ERROR"

    def __init__(self, message: str = "An unexpected error occurred", **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
            "status": self.status_code,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(NotiHubError):
    """Input validation failed (422)."""

    status_code = 422
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        super().__init__(message, field=field, **details)


class NotFoundError(NotiHubError):
    """Resource not found (404)."""

    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, **identifiers: Any):
        super().__init__(f"{resource} not found", resource=resource, **identifiers)


class ChannelNotFoundError(NotiHubError):
    """No configured channel matches the requested target(s)."""

    status_code = 404
    error_code = "CHANNEL_NOT_FOUND"

    def __init__(self, requested: Iterable[str]):
        self.requested = list(requested)
        super().__init__(
            f"No matching channels found: {', '.join(self.requested) or '<none>'}",
            requested=self.requested,
        )


class ChannelSendError(NotiHubError):
    """A channel reported an unsuccessful delivery."""

    status_code = 502
    error_code = "CHANNEL_SEND_ERROR"

    def __init__(self, channel: str, message: str = ""):
        self.channel = channel
        super().__init__(message or f"Channel '{channel}' reported failure", channel=channel)


class StorageError(NotiHubError):
    error_code = "STORAGE_ERROR"


class DuplicateEventError(StorageError):
    """A record for this (trace_id, event_type) already exists."""

    status_code = 409
    error_code = "DUPLICATE_EVENT"

    def __init__(self, trace_id: str, event_type: str):
        super().__init__(
            f"Event already stored for trace_id={trace_id!r} event_type={event_type!r}",
            trace_id=trace_id,
            event_type=event_type,
        )


class PersistenceDisabledError(NotiHubError):
    status_code = 503
    error_code = "PERSISTENCE_DISABLED"

    def __init__(self) -> None:
        super().__init__("Event persistence is disabled")


class ConfigurationError(NotiHubError):
    error_code = "CONFIGURATION_ERROR"


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def _error_response(
    request: Request,
    body: Dict[str, Any],
    *,
    debug: bool,
) -> JSONResponse:
    if debug:
        body["path"] = request.url.path
        body["method"] = request.method
    return JSONResponse(status_code=body["status"], content={"error": body})


def register_error_handlers(app: FastAPI, *, debug: bool = False) -> None:
    """Install JSON handlers for NotiHubError, stray ValueError and anything else.

    With `debug` the failing path and method are echoed back, and unhandled
    exceptions expose their message instead of a generic one.
    """

    @app.exception_handler(NotiHubError)
    async def handle_notihub_error(request: Request, exc: NotiHubError):
        logger.log(
            logging.WARNING if exc.status_code < 500 else logging.ERROR,
            "%s %s -> %d %s: %s",
            request.method, request.url.path, exc.status_code, exc.error_code, exc.message,
            extra={"endpoint": request.url.path, "status_code": exc.status_code},
        )
        return _error_response(request, exc.to_dict(), debug=debug)

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError):
        logger.warning("ValueError on %s: %s", request.url.path, exc)
        return _error_response(
            request,
            {"code": "VALIDATION_ERROR", "message": str(exc), "status": 422},
            debug=debug,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception on %s: %s\n%s",
            request.url.path, exc, traceback.format_exc(),
        )
        return _error_response(
            request,
            {
                "code": "INTERNAL_ERROR",
                "message": str(exc) if debug else "Internal server error",
                "status": 500,
            },
            debug=debug,
        )
