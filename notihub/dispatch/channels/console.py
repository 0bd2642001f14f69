"""
console.py — Log-only channel.

Renders each event as plain text through the logging stack, at a level
derived from severity (critical → ERROR, high → WARNING, else INFO). Always
succeeds; useful as a default and in development.
"""

from __future__ import annotations

import logging
import uuid
from typing import Iterable, Optional

from notihub.dispatch.channels.base import BaseChannel, ChannelContext
from notihub.dispatch.models import ChannelType, Event, SendResult, Severity

logger = logging.getLogger(__name__)

_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.INFO,
    Severity.HIGH: logging.WARNING,
    Severity.CRITICAL: logging.ERROR,
}


class ConsoleChannel(BaseChannel):
    """Writes the plain-text rendering of each event to the log."""

    channel_type = ChannelType.CONSOLE

    def __init__(
        self,
        name: str = "console",
        *,
        event_types: Optional[Iterable[str]] = None,
        channel_logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(name, event_types=event_types)
        self._log = channel_logger or logger

    async def send(self, event: Event, context: Optional[ChannelContext] = None) -> SendResult:
        self._log.log(
            _LEVELS.get(event.severity, logging.INFO),
            "[%s]\n%s", self.name, event.to_plain_text(),
            extra={"trace_id": event.trace_id, "channel": self.name},
        )
        return SendResult(success=True, channel=self.name, message_id=uuid.uuid4().hex[:12])

    async def health_check(self) -> bool:
        return True
