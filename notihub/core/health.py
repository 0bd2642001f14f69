"""
Service health: probe storage, cache and channels, then fold the results.

    component      probe                          failure means
    ─────────      ─────                          ─────────────
    storage        SELECT 1 (skipped if off)      UNHEALTHY
    cache          in-process / Redis PING        UNHEALTHY
    channels       every channel's health_check   DEGRADED  (/health only)

The report takes the worst component status. Channels can only degrade the
service: the remaining channels still deliver, and a dead webhook receiver
should not take the hub out of a load balancer.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

_BOOT = time.monotonic()

Probe = Callable[[], Awaitable[bool]]


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @property
    def rank(self) -> int:
        return _RANK[self]


_RANK = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.UNHEALTHY: 2,
}


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    message: str = ""
    latency_ms: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name, "status": self.status.value}
        if self.latency_ms is not None:
            out["latency_ms"] = round(self.latency_ms, 2)
        if self.message:
            out["message"] = self.message
        if self.details:
            out["details"] = self.details
        return out


@dataclass
class HealthReport:
    status: HealthStatus
    components: List[ComponentHealth]
    version: str = ""
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    uptime_seconds: float = field(default_factory=lambda: time.monotonic() - _BOOT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "timestamp": self.checked_at.isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


# ── Component checks ──

async def _ping(name: str, probe: Probe, ok_message: str) -> ComponentHealth:
    started = time.perf_counter()
    try:
        alive = await probe()
        error = "" if alive else "ping returned false"
    except Exception as exc:
        error = f"{type(exc).__name__}: {exc}"
    elapsed = (time.perf_counter() - started) * 1000

    if error:
        return ComponentHealth(name, HealthStatus.UNHEALTHY, error, elapsed)
    return ComponentHealth(name, HealthStatus.HEALTHY, ok_message, elapsed)


async def check_storage(ping: Optional[Probe]) -> ComponentHealth:
    """Check database connectivity; disabled persistence is reported as such."""
    if ping is None:
        return ComponentHealth("storage", message="Persistence disabled")
    return await _ping("storage", ping, "Connection available")


async def check_cache(ping: Probe) -> ComponentHealth:
    return await _ping("cache", ping, "Cache available")


def check_channels(statuses: Mapping[str, Any]) -> ComponentHealth:
    """Summarise per-channel ChannelHealth objects into one component."""
    details = {name: h.to_dict() for name, h in statuses.items()}
    down = [name for name, h in statuses.items() if not h.healthy]

    if not statuses:
        return ComponentHealth("channels", HealthStatus.DEGRADED, "No channels configured")
    if down:
        return ComponentHealth(
            "channels", HealthStatus.DEGRADED,
            f"Unhealthy channels: {', '.join(down)}", details=details,
        )
    return ComponentHealth(
        "channels", message=f"{len(statuses)} channel(s) healthy", details=details,
    )


def aggregate(components: List[ComponentHealth], *, version: str = "") -> HealthReport:
    worst = max((c.status for c in components), key=lambda s: s.rank, default=HealthStatus.HEALTHY)
    return HealthReport(status=worst, components=components, version=version)


async def run_health_check(hub: Any, *, include_channels: bool = True) -> HealthReport:
    """Run checks against a running NotiHub and aggregate them.

    `include_channels=False` skips channel health checks entirely; the
    readiness route uses it.
    """
    components = [
        await check_storage(hub.storage.ping if hub.storage is not None else None),
        await check_cache(hub.cache.ping),
    ]
    if include_channels:
        components.append(check_channels(await hub.dispatcher.get_channel_statuses()))
    report = aggregate(components, version=hub.settings.APP_VERSION)
    if report.status is not HealthStatus.HEALTHY:
        logger.warning(
            "Health check %s: %s",
            report.status.value,
            ", ".join(f"{c.name}={c.status.value}" for c in components),
        )
    return report
