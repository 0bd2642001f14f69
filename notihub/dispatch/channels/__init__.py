"""
channels — Outbound delivery backends.

Each channel exposes:
    send(event, context=None) → SendResult
    health_check() → bool
    supported_event_types() → frozenset of EventType

Retry logic lives in the dispatcher, not in channels.
"""

from notihub.dispatch.channels.base import BaseChannel, Channel, ChannelContext
from notihub.dispatch.channels.console import ConsoleChannel
from notihub.dispatch.channels.factory import build_channel, build_channels
from notihub.dispatch.channels.webhook import WebhookChannel

__all__ = [
    "BaseChannel",
    "Channel",
    "ChannelContext",
    "ConsoleChannel",
    "WebhookChannel",
    "build_channel",
    "build_channels",
]
