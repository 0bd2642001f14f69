"""
retry.py — Bounded retry with a fixed per-attempt delay schedule.

═══════════════════════════════════════════════════════════════════════════
BACKOFF SCHEDULE
═══════════════════════════════════════════════════════════════════════════

The delay after a failed attempt is looked up by zero-based attempt index;
the last element is reused once the schedule runs out:

    backoff = [1, 4, 10], max_attempts = 5

    Attempt 0 fails → sleep 1s
    Attempt 1 fails → sleep 4s
    Attempt 2 fails → sleep 10s
    Attempt 3 fails → sleep 10s
    Attempt 4 fails → raise the attempt-4 error

Every exception is retryable; there is no error classification and no
circuit breaking. Each `execute` call keeps its own attempt counter, so
concurrent calls share no state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Attempt budget and delay schedule (seconds)."""
    max_attempts: int = 3
    backoff: Sequence[float] = field(default_factory=lambda: (1.0, 4.0, 10.0))

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if not self.backoff:
            raise ValueError("backoff must contain at least one delay")
        if any(d < 0 for d in self.backoff):
            raise ValueError("backoff delays must be non-negative")
        object.__setattr__(self, "backoff", tuple(self.backoff))


def compute_delay(config: RetryConfig, attempt: int) -> float:
    """Delay after zero-based `attempt`, clamped to the last schedule entry."""
    return config.backoff[min(attempt, len(config.backoff) - 1)]


class RetryPolicy:
    """
    Wraps a no-argument coroutine factory with bounded attempts.

    Parameters
    ----------
    config : RetryConfig
    sleep : callable
        Awaitable sleep; injectable for tests.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str = "unknown",
    ) -> T:
        """
        Run `operation` until it succeeds or the attempt budget is spent.

        Returns the first successful result. When every attempt fails, the
        exception from the *last* attempt is re-raised.
        """
        last_error: Optional[BaseException] = None
        max_attempts = self.config.max_attempts

        for attempt in range(max_attempts):
            try:
                return await operation()
            except Exception as exc:
                last_error = exc
                if attempt < max_attempts - 1:
                    delay = compute_delay(self.config, attempt)
                    logger.info(
                        "Attempt %d/%d failed for %s: %s; retrying in %.1fs",
                        attempt + 1, max_attempts, label, exc, delay,
                        extra={"channel": label, "attempt": attempt + 1},
                    )
                    await self._sleep(delay)

        logger.warning(
            "All %d attempt(s) failed for %s: %s",
            max_attempts, label, last_error,
            extra={"channel": label, "attempt": max_attempts},
        )
        raise last_error  # max_attempts >= 1, so at least one error was seen

    @property
    def delays(self) -> List[float]:
        """The sleeps a permanently failing operation would incur."""
        return [compute_delay(self.config, a) for a in range(self.config.max_attempts - 1)]
