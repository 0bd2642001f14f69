"""
base.py — Channel contract.

Every outbound delivery target implements Channel:
    • name / type                — configured identity
    • send(event, context?)      — one delivery attempt, returns SendResult
    • health_check()             — reachability only, never delivers an event
    • supported_event_types()    — event types the channel accepts

BaseChannel carries the configured name and event-type filter shared by the
concrete channels.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional

from notihub.dispatch.models import (
    ChannelType,
    Event,
    EventType,
    SendResult,
)

ALL_EVENT_TYPES: FrozenSet[EventType] = frozenset(EventType)


@dataclass
class ChannelContext:
    """Optional per-send hints passed by the caller."""
    retry_count: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)


class Channel(ABC):
    """Delivers an event to one external system.

    `send` may be invoked several times for the same event by the retry
    policy; implementations must produce the same logical delivery each
    time. Dedup is not a channel concern.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique configured name (e.g. 'ops-webhook')."""

    @property
    @abstractmethod
    def type(self) -> ChannelType:
        ...

    @abstractmethod
    async def send(self, event: Event, context: Optional[ChannelContext] = None) -> SendResult:
        """Deliver `event` and report the outcome."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Whether the target looks reachable. Must not deliver anything."""

    def supported_event_types(self) -> FrozenSet[EventType]:
        return ALL_EVENT_TYPES

    def supports(self, event: Event) -> bool:
        return event.event_type in self.supported_event_types()

    async def close(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"


class BaseChannel(Channel):
    """Convenience base: configured name and event-type filter."""

    channel_type: ChannelType = ChannelType.API

    def __init__(self, name: str, *, event_types: Optional[Iterable[str]] = None) -> None:
        self._name = name
        self._event_types = (
            frozenset(EventType(t) for t in event_types)
            if event_types is not None else ALL_EVENT_TYPES
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> ChannelType:
        return self.channel_type

    def supported_event_types(self) -> FrozenSet[EventType]:
        return self._event_types

    def _failure(self, error: Any) -> SendResult:
        return SendResult(success=False, channel=self.name, error=str(error) or "Unknown error")
