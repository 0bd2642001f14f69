"""
Logging setup for the hub.

Two output modes share one pipeline:

    record ──► DispatchContextFilter ──► JSONFormatter    (production)
                 stamps trace_id /   └─► PrettyFormatter  (development)
                 source / event_type

The dispatcher binds `dispatch_context(trace_id=..., ...)` around each
dispatch; the filter copies the bound values onto every record emitted in
that task, including records from channels and the retry policy, unless the
call site passed its own value through `extra=`.

Usage:
    from notihub.core.logging_config import setup_logging, dispatch_context

    setup_logging("INFO", json_output=False)
    with dispatch_context(trace_id="abc", source="ci"):
        logger.info("sending")
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

_dispatch_context: ContextVar[Dict[str, Any]] = ContextVar("dispatch_context", default={})

# record attributes surfaced in JSON output when present
_FIELDS = (
    "trace_id", "source", "event_type", "channel", "attempt",
    "event_id", "duration_ms", "status_code", "endpoint",
)

_NOISY = ("uvicorn.access", "httpx", "httpcore", "aiosqlite", "sqlalchemy.engine")


def get_dispatch_context() -> Dict[str, Any]:
    return _dispatch_context.get()


@contextmanager
def dispatch_context(**kwargs: Any) -> Iterator[None]:
    """Bind log context for the duration of one dispatch."""
    token = _dispatch_context.set({**_dispatch_context.get(), **kwargs})
    try:
        yield
    finally:
        _dispatch_context.reset(token)


class DispatchContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _dispatch_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update({k: getattr(record, k) for k in _FIELDS if hasattr(record, k)})
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class PrettyFormatter(logging.Formatter):
    """Coloured single-line output with a short trace/channel tag."""

    _LEVEL_COLOURS = {
        logging.DEBUG: "\033[2m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    _RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        colour = self._LEVEL_COLOURS.get(record.levelno, "")
        tag = "|".join(
            str(v) for v in (
                str(getattr(record, "trace_id", "") or "")[:12],
                getattr(record, "channel", ""),
            ) if v
        )
        line = (
            f"{self.formatTime(record, '%H:%M:%S')} "
            f"{colour}{record.levelname:<8}{self._RESET} "
            f"{'[' + tag + '] ' if tag else ''}{record.name}: {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", *, json_output: bool = False) -> None:
    """Configure the root logger once at process start."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(DispatchContextFilter())
    handler.setFormatter(JSONFormatter() if json_output else PrettyFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING)
