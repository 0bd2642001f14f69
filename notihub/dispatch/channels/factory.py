"""Build channel instances from the ordered CHANNELS settings list."""

from __future__ import annotations

import logging
from typing import List, Sequence

import httpx

from notihub.core.config import ChannelSettings
from notihub.core.errors import ConfigurationError
from notihub.dispatch.channels.base import Channel
from notihub.dispatch.channels.console import ConsoleChannel
from notihub.dispatch.channels.webhook import WebhookChannel

logger = logging.getLogger(__name__)


def build_channel(cfg: ChannelSettings, client: httpx.AsyncClient) -> Channel:
    """Instantiate one channel from its settings entry."""
    kind = cfg.type.lower()
    try:
        if kind == "console":
            return ConsoleChannel(cfg.name, event_types=cfg.event_types)
        if kind == "webhook":
            if not cfg.url:
                raise ConfigurationError(
                    f"Webhook channel '{cfg.name}' needs a url", channel=cfg.name,
                )
            return WebhookChannel(
                cfg.name,
                cfg.url,
                client,
                headers=cfg.headers,
                timeout_seconds=cfg.timeout_seconds,
                event_types=cfg.event_types,
            )
    except ValueError as exc:
        # unknown event type names in event_types
        raise ConfigurationError(str(exc), channel=cfg.name) from exc

    raise ConfigurationError(
        f"Unknown channel type '{cfg.type}' for channel '{cfg.name}'",
        channel=cfg.name,
        supported=["console", "webhook"],
    )


def build_channels(
    configs: Sequence[ChannelSettings],
    client: httpx.AsyncClient,
) -> List[Channel]:
    """Build enabled channels, preserving configuration order."""
    channels = [build_channel(cfg, client) for cfg in configs if cfg.enabled]
    logger.info(
        "Configured %d channel(s): %s",
        len(channels), [c.name for c in channels],
    )
    return channels
