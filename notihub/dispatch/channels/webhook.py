"""
webhook.py — Generic JSON webhook channel.

Delivery mechanism:
    • POST {"event": <Event.to_dict()>} to the configured URL
    • Any 2xx response counts as delivered
    • health_check() sends HEAD only; nothing is delivered
    • message_id is taken from the JSON body ("message_id" or "id") or the
      X-Message-Id response header when the receiver provides one

A shared ``httpx.AsyncClient`` is injected at construction time so that all
webhook channels reuse one connection pool. Transport errors and non-2xx
responses are reported as failed SendResults, never raised.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

import httpx

from notihub.dispatch.channels.base import BaseChannel, ChannelContext
from notihub.dispatch.models import ChannelType, Event, SendResult

logger = logging.getLogger(__name__)


class WebhookChannel(BaseChannel):
    """Posts events as JSON to an HTTP endpoint."""

    channel_type = ChannelType.WEBHOOK

    def __init__(
        self,
        name: str,
        url: str,
        client: httpx.AsyncClient,
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout_seconds: float = 10.0,
        event_types: Optional[Iterable[str]] = None,
    ) -> None:
        super().__init__(name, event_types=event_types)
        self._url = url
        self._client = client
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._timeout = timeout_seconds

    @property
    def url(self) -> str:
        return self._url

    async def send(self, event: Event, context: Optional[ChannelContext] = None) -> SendResult:
        body = {"event": event.to_dict()}
        if context is not None and context.metadata:
            body["metadata"] = context.metadata

        try:
            resp = await self._client.post(
                self._url, json=body, headers=self._headers, timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.error("[%s] HTTP error: %s", self.name, exc)
            return self._failure(f"{type(exc).__name__}: {exc}")

        if not resp.is_success:
            logger.warning("[%s] Unexpected status %d", self.name, resp.status_code)
            return self._failure(f"HTTP {resp.status_code}: {resp.text[:200]}")

        return SendResult(
            success=True,
            channel=self.name,
            message_id=self._message_id(resp),
        )

    async def health_check(self) -> bool:
        """HEAD the endpoint; any non-5xx answer means the receiver is up.

        Receivers commonly reject HEAD with 404/405, which still proves
        reachability. No event is posted.
        """
        try:
            resp = await self._client.head(
                self._url, headers=self._headers, timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("[%s] Health check failed: %s", self.name, exc)
            return False
        return resp.status_code < 500

    @staticmethod
    def _message_id(resp: httpx.Response) -> Optional[str]:
        header = resp.headers.get("x-message-id")
        if header:
            return header
        try:
            data = resp.json()
        except ValueError:
            return None
        if isinstance(data, dict):
            value = data.get("message_id") or data.get("id")
            return str(value) if value is not None else None
        return None
