# src/backends/retry.py - v2
"""Bounded exponential backoff around a single backend call.

Failures are classified as transient (retried) or fatal (propagated at once).
Exhausting the attempt budget raises RetryExhaustedError wrapping the last
transient error, so callers can tell "gave up after N tries" apart from
"first try failed fatally".
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, TypeVar

from promptaudit.backends.errors import (
    FatalBackendError,
    RetryExhaustedError,
    TransientBackendError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ErrorKind = Literal["transient", "fatal"]

_TRANSIENT_MARKERS = (
    "429", "rate limit", "rate_limit", "timeout", "timed out",
    "500", "502", "503", "504", "connection reset", "econnreset",
    "econnrefused", "network", "temporarily unavailable", "overloaded",
)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff curve for transient failures."""

    max_attempts: int = 3
    base_delay_s: float = 1.0
    max_delay_s: float = 30.0
    backoff_factor: float = 2.0
    jitter: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def delay_for(self, attempt: int) -> float:
        """Delay before the retry that follows failed attempt `attempt` (1-based)."""
        delay = self.base_delay_s * (self.backoff_factor ** (attempt - 1))
        delay = min(delay, self.max_delay_s)
        if self.jitter:
            delay *= 0.5 + random.random()  # noqa: S311
        return delay


def classify_error(error: BaseException) -> ErrorKind:
    """Classify an exception as transient or fatal.

    Typed backend errors decide for themselves; builtin timeouts and
    connection errors are transient; anything else falls back to message
    heuristics and defaults to fatal.
    """
    if isinstance(error, TransientBackendError):
        return "transient"
    if isinstance(error, FatalBackendError):
        return "fatal"
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return "transient"

    msg = str(error).lower()
    name = type(error).__name__.lower()
    if "timeout" in name:
        return "transient"
    if any(marker in msg for marker in _TRANSIENT_MARKERS):
        return "transient"
    return "fatal"


class RetryExecutor:
    """Runs an async callable under a RetryPolicy."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        classify: Callable[[BaseException], ErrorKind] = classify_error,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        label: str = "backend",
    ) -> None:
        self._policy = policy or RetryPolicy()
        self._classify = classify
        self._sleep = sleep
        self._label = label

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Invoke `fn` until it succeeds, fails fatally or runs out of attempts.

        Raises:
            RetryExhaustedError: After max_attempts transient failures.
            Exception: The original exception of a fatal failure.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await fn()
            except Exception as e:
                if self._classify(e) == "fatal":
                    logger.debug("%s: fatal error on attempt %d: %s", self._label, attempt, e)
                    raise

                if attempt >= self._policy.max_attempts:
                    raise RetryExhaustedError(
                        attempt, e, backend=getattr(e, "backend", self._label),
                    ) from e

                delay = self._policy.delay_for(attempt)
                logger.warning(
                    "%s: transient error (attempt %d/%d), retrying in %.1fs: %s",
                    self._label, attempt, self._policy.max_attempts, delay, e,
                )
                await self._sleep(delay)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    label: str = "backend",
) -> T:
    """Execute an async callable with the default classifier.

    Raises:
        RetryExhaustedError: If all attempts fail transiently.
    """
    return await RetryExecutor(policy, label=label).run(fn)
