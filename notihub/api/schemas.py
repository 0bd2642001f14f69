"""
Pydantic schemas for the dispatch API.

Request models validate the wire shape; `to_event()` hands the payload to
Event.create(), which applies the domain invariants (non-empty source and
title, the closed context value variant, trace_id generation).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from notihub.dispatch.models import ActionType, Event, EventStatus, EventType, Severity


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class ActionInput(BaseModel):
    type: ActionType
    text: str = Field(..., min_length=1, examples=["Open dashboard"])
    url: Optional[str] = Field(None, examples=["https://ci.example.com/runs/42"])
    callback: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class NotifyRequest(BaseModel):
    """Request body for POST /api/v1/notify."""
    source: str = Field(..., min_length=1, examples=["ci-pipeline"])
    event_type: EventType = Field(EventType.INFO, examples=["error"])
    severity: Severity = Field(Severity.LOW, examples=["high"])
    title: str = Field(..., min_length=1, examples=["Build failed"])
    summary: str = Field("", examples=["3 tests failed on main"])
    context: Optional[Dict[str, Any]] = Field(
        None,
        description="Free-form key/value data (JSON scalars, lists, objects)",
    )
    actions: Optional[List[ActionInput]] = None
    trace_id: Optional[str] = Field(
        None,
        description="Correlation id; generated when omitted",
    )
    timestamp: Optional[datetime] = Field(
        None,
        description="When the event occurred; defaults to now (UTC)",
    )

    def to_event(self) -> Event:
        return Event.create(
            source=self.source,
            title=self.title,
            summary=self.summary,
            event_type=self.event_type,
            severity=self.severity,
            context=self.context,
            actions=[a.model_dump(exclude_none=True) for a in self.actions]
            if self.actions is not None else None,
            trace_id=self.trace_id,
            timestamp=self.timestamp,
        )


class NotifyChannelsRequest(NotifyRequest):
    """Request body for POST /api/v1/notify/channels."""
    channels: List[str] = Field(..., min_length=1, examples=[["console"]])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class SendResultOut(BaseModel):
    success: bool
    channel: str
    message_id: Optional[str] = None
    error: Optional[str] = None
    timestamp: str


class NotifyResponse(BaseModel):
    """Per-channel outcomes; empty for duplicates."""
    trace_id: str
    results: List[SendResultOut]


class EventRecordOut(BaseModel):
    id: int
    trace_id: str
    source: str
    event_type: EventType
    severity: Severity
    title: str
    summary: str
    context: Optional[Dict[str, Any]] = None
    actions: Optional[List[Dict[str, Any]]] = None
    timestamp: str
    channels_sent: List[str]
    status: EventStatus
    created_at: str


class EventPageOut(BaseModel):
    total: int
    items: List[EventRecordOut]
    limit: int
    offset: int


class ChannelStatusOut(BaseModel):
    name: str
    type: str
    event_types: List[str]
    healthy: bool
    error: Optional[str] = None


class ChannelTestResponse(BaseModel):
    channel: str
    healthy: bool
