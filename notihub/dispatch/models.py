"""
models.py — Shared data structures for the dispatch pipeline.

Defines:
    • EventType / Severity / ActionType / EventStatus / ChannelType enums
    • Action        — a link or postback button attached to an event
    • Event         — the normalized record a producer hands to the dispatcher
    • SendResult    — final outcome of one channel for one dispatch
    • EventRecord   — a persisted Event with its delivery outcome
    • EventFilters / PaginatedResult — query inputs and outputs
    • ChannelHealth — result of a channel health probe

═══════════════════════════════════════════════════════════════════════════
EVENT LIFECYCLE
═══════════════════════════════════════════════════════════════════════════

    producer adapter ──► Event ──► NotificationDispatcher.notify()
                                        │
                                        ├─► SendResult per channel
                                        ▼
                                   EventStore.save() ──► EventRecord

An Event is frozen once built: the trace_id is assigned at creation and the
record is read-only all the way through persistence.

`context` values are limited to a closed JSON-like variant: str, int,
float, bool, None, a str-keyed mapping of such values, or a list of them.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from notihub.core.errors import ValidationError


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class EventType(str, Enum):
    SUCCESS = "success"
    ERROR   = "error"
    WARNING = "warning"
    INFO    = "info"


class Severity(str, Enum):
    LOW      = "low"
    MEDIUM   = "medium"
    HIGH     = "high"
    CRITICAL = "critical"


class ActionType(str, Enum):
    LINK     = "link"
    POSTBACK = "postback"


class EventStatus(str, Enum):
    """Aggregate delivery status of one dispatch."""
    SUCCESS = "success"   # every attempted channel succeeded
    PARTIAL = "partial"   # some, not all
    FAILED  = "failed"    # none, or nothing attempted


class ChannelType(str, Enum):
    WEBHOOK = "webhook"
    MCP     = "mcp"
    API     = "api"
    EMAIL   = "email"
    CONSOLE = "console"


ContextValue = Union[
    str, int, float, bool, None,
    Mapping[str, "ContextValue"],
    List["ContextValue"],
]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_trace_id() -> str:
    return uuid.uuid4().hex


def _check_context_value(value: Any, path: str) -> None:
    if value is None or isinstance(value, (str, bool, int, float)):
        return
    if isinstance(value, Mapping):
        for k, v in value.items():
            if not isinstance(k, str):
                raise ValidationError(
                    f"context keys must be strings (at {path})", field="context",
                )
            _check_context_value(v, f"{path}.{k}")
        return
    if isinstance(value, (list, tuple)):
        for i, v in enumerate(value):
            _check_context_value(v, f"{path}[{i}]")
        return
    raise ValidationError(
        f"Unsupported context value of type {type(value).__name__} at {path}",
        field="context",
    )


def _freeze(value: Any) -> Any:
    """Read-only deep copy: mappings become MappingProxyType, lists tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    """Inverse of _freeze, producing plain JSON-compatible containers."""
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


def _parse_datetime(value: Union[str, datetime, None]) -> datetime:
    if value is None:
        return _now()
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Action:
    """An interactive element rendered by channels that support it."""
    type: ActionType
    text: str
    url: Optional[str] = None
    callback: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, ActionType):
            object.__setattr__(self, "type", ActionType(self.type))

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"type": self.type.value, "text": self.text}
        if self.url is not None:
            d["url"] = self.url
        if self.callback is not None:
            d["callback"] = self.callback
        if self.metadata:
            d["metadata"] = self.metadata
        return d

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Action":
        return cls(
            type=ActionType(data["type"]),
            text=data.get("text", ""),
            url=data.get("url"),
            callback=data.get("callback"),
            metadata=data.get("metadata"),
        )


@dataclass(frozen=True)
class Event:
    """
    A normalized notification event.

    Attributes
    ----------
    source : str
        Producer identifier (non-empty).
    event_type : EventType
    severity : Severity
    title : str
        Non-empty headline.
    summary : str
    trace_id : str
        Unique per logical occurrence; with event_type it forms the dedup key.
    timestamp : datetime
        When the event occurred (UTC).
    context : mapping, optional
        Open str-keyed map of ContextValue, stored as a read-only deep copy
        (nested mappings are MappingProxyType, lists are tuples).
    actions : tuple of Action, optional
    """
    source: str
    event_type: EventType
    severity: Severity
    title: str
    summary: str
    trace_id: str
    timestamp: datetime
    context: Optional[Mapping[str, ContextValue]] = None
    actions: Optional[tuple] = None

    def __post_init__(self) -> None:
        if not self.source or not self.source.strip():
            raise ValidationError("Event source must be non-empty", field="source")
        if not self.title or not self.title.strip():
            raise ValidationError("Event title must be non-empty", field="title")
        try:
            if not isinstance(self.event_type, EventType):
                object.__setattr__(self, "event_type", EventType(self.event_type))
            if not isinstance(self.severity, Severity):
                object.__setattr__(self, "severity", Severity(self.severity))
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if self.context is not None:
            _check_context_value(self.context, "context")
            object.__setattr__(self, "context", _freeze(self.context))
        if self.actions is not None:
            object.__setattr__(self, "actions", tuple(
                a if isinstance(a, Action) else Action.from_dict(a)
                for a in self.actions
            ))
        object.__setattr__(self, "timestamp", _parse_datetime(self.timestamp))

    @classmethod
    def create(
        cls,
        *,
        source: str,
        title: str,
        summary: str = "",
        event_type: Union[EventType, str] = EventType.INFO,
        severity: Union[Severity, str] = Severity.LOW,
        context: Optional[Dict[str, ContextValue]] = None,
        actions: Optional[List[Union[Action, Mapping[str, Any]]]] = None,
        trace_id: Optional[str] = None,
        timestamp: Union[datetime, str, None] = None,
    ) -> "Event":
        """Build an Event, generating trace_id and timestamp when absent."""
        return cls(
            source=source,
            event_type=event_type,
            severity=severity,
            title=title,
            summary=summary,
            trace_id=trace_id or generate_trace_id(),
            timestamp=_parse_datetime(timestamp),
            context=context,
            actions=tuple(actions) if actions is not None else None,
        )

    @property
    def dedup_key(self) -> str:
        """`{trace_id}:{event_type}`; the dedup gate prefixes it with `dedup:`."""
        return f"{self.trace_id}:{self.event_type.value}"

    def plain_context(self) -> Optional[Dict[str, Any]]:
        """A mutable, JSON-ready copy of `context`."""
        return _thaw(self.context) if self.context is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "title": self.title,
            "summary": self.summary,
            "context": self.plain_context(),
            "actions": [a.to_dict() for a in self.actions] if self.actions else None,
            "trace_id": self.trace_id,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Event":
        return cls.create(
            source=data.get("source", ""),
            title=data.get("title", ""),
            summary=data.get("summary", ""),
            event_type=data.get("event_type", EventType.INFO),
            severity=data.get("severity", Severity.LOW),
            context=data.get("context"),
            actions=data.get("actions"),
            trace_id=data.get("trace_id"),
            timestamp=data.get("timestamp"),
        )

    def to_plain_text(self) -> str:
        """Render a channel-agnostic plain-text fallback."""
        lines = [
            f"[{self.severity.value.upper()}] {self.title}",
            f"Source: {self.source}",
            f"Type: {self.event_type.value}",
            f"Summary: {self.summary}",
        ]
        if self.context:
            lines.append("Context:")
            for key, value in self.context.items():
                lines.append(f"  {key}: {_thaw(value)}")
        return "\n".join(lines)


@dataclass
class SendResult:
    """Final outcome of one channel for one dispatch (not per attempt)."""
    success: bool
    channel: str
    message_id: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "channel": self.channel,
            "message_id": self.message_id,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class EventRecord:
    """A persisted event with its derived delivery status."""
    id: int
    event: Event
    channels_sent: List[str]
    status: EventStatus
    created_at: datetime

    @property
    def trace_id(self) -> str:
        return self.event.trace_id

    @property
    def event_type(self) -> EventType:
        return self.event.event_type

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            **self.event.to_dict(),
            "channels_sent": list(self.channels_sent),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class EventFilters:
    """Equality filters + timestamp window + pagination for queries."""
    source: Optional[str] = None
    event_type: Optional[EventType] = None
    severity: Optional[Severity] = None
    timestamp_gte: Optional[datetime] = None  # inclusive
    timestamp_lt: Optional[datetime] = None   # exclusive
    limit: int = 50
    offset: int = 0

    def __post_init__(self) -> None:
        try:
            if self.event_type is not None and not isinstance(self.event_type, EventType):
                self.event_type = EventType(self.event_type)
            if self.severity is not None and not isinstance(self.severity, Severity):
                self.severity = Severity(self.severity)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if self.timestamp_gte is not None:
            self.timestamp_gte = _parse_datetime(self.timestamp_gte)
        if self.timestamp_lt is not None:
            self.timestamp_lt = _parse_datetime(self.timestamp_lt)
        if self.limit < 1:
            raise ValidationError("limit must be >= 1", field="limit")
        if self.offset < 0:
            raise ValidationError("offset must be >= 0", field="offset")


@dataclass
class PaginatedResult:
    total: int
    items: List[EventRecord]
    limit: int
    offset: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "items": [r.to_dict() for r in self.items],
            "limit": self.limit,
            "offset": self.offset,
        }


@dataclass
class ChannelHealth:
    healthy: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"healthy": self.healthy}
        if self.error:
            d["error"] = self.error
        return d
