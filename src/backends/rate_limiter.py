# src/backends/rate_limiter.py - v1
"""Per-backend request pacing.

Interval-based rather than token-bucket: the limiter remembers when each
backend identity last dispatched and waits out the remainder of
60 / requests_per_minute seconds before running the next call. The first
call for an identity runs immediately. Each identity has its own lock, so
waiting on one backend never delays another backend's schedule.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Mapping, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Conservative hosted-API defaults (requests per minute). Local models are unpaced.
DEFAULT_RATE_LIMITS: dict[str, int] = {
    "anthropic": 50,
    "google": 50,
    "ollama": 0,
}


class RateLimiter:
    """Paces outgoing calls per backend identity."""

    def __init__(
        self,
        limits: Mapping[str, int] | None = None,
        default_rpm: int = 0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._limits = dict(limits or {})
        self._default_rpm = default_rpm
        self._clock = clock
        self._sleep = sleep
        self._last_dispatch: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def min_interval(self, identity: str) -> float:
        """Minimum seconds between two dispatches for `identity` (0 = unpaced)."""
        rpm = self._limits.get(identity, self._default_rpm)
        if rpm <= 0:
            return 0.0
        return 60.0 / rpm

    async def throttle(self, identity: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run `fn` once the identity's minimum interval has elapsed."""
        lock = self._locks.setdefault(identity, asyncio.Lock())
        async with lock:
            interval = self.min_interval(identity)
            last = self._last_dispatch.get(identity)
            if interval > 0 and last is not None:
                wait = interval - (self._clock() - last)
                if wait > 0:
                    logger.debug("Pacing %s: waiting %.2fs", identity, wait)
                    await self._sleep(wait)
            self._last_dispatch[identity] = self._clock()
        return await fn()

    def reset(self, identity: str | None = None) -> None:
        """Forget recorded dispatches so the next call runs immediately.

        Meant for unrelated runs sharing one limiter, not for the per-batch path.
        """
        if identity is None:
            self._last_dispatch.clear()
        else:
            self._last_dispatch.pop(identity, None)
