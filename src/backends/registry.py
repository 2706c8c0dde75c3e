# src/backends/registry.py - v1
"""Backend selection by availability probing and preference order."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Sequence

from promptaudit.backends.base_backend import BaseBackend
from promptaudit.backends.errors import AllBackendsUnavailableError, UnknownBackendError

logger = logging.getLogger(__name__)

FallbackCallback = Callable[[str, str], None]


class BackendRegistry:
    """Holds configured backends and picks the first reachable one.

    Args:
        backends: Configured backends; their order is the default preference.
        probe_timeout_s: Upper bound for each availability probe.
        on_fallback: Called with (first_candidate, chosen) when the chosen
            backend is not the first candidate.
    """

    def __init__(
        self,
        backends: Sequence[BaseBackend],
        probe_timeout_s: float = 5.0,
        on_fallback: FallbackCallback | None = None,
    ) -> None:
        self._backends: dict[str, BaseBackend] = {}
        for backend in backends:
            if backend.identity in self._backends:
                raise ValueError(f"Duplicate backend identity: {backend.identity!r}")
            self._backends[backend.identity] = backend
        self._probe_timeout_s = probe_timeout_s
        self._on_fallback = on_fallback

    @property
    def identities(self) -> list[str]:
        return list(self._backends)

    def get(self, identity: str) -> BaseBackend:
        try:
            return self._backends[identity]
        except KeyError:
            raise UnknownBackendError(
                f"Backend {identity!r} is not configured "
                f"(configured: {', '.join(self._backends) or 'none'})"
            ) from None

    async def probe(self, backend: BaseBackend) -> bool:
        """Bounded availability probe; timeouts and errors mean unavailable."""
        try:
            return bool(
                await asyncio.wait_for(backend.is_available(), timeout=self._probe_timeout_s)
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Availability probe for %s timed out after %.1fs",
                backend.identity, self._probe_timeout_s,
            )
        except Exception as e:
            logger.warning("Availability probe for %s failed: %s", backend.identity, e)
        return False

    async def select_backend(
        self,
        preferred_order: Sequence[str] | None = None,
        force: str | None = None,
    ) -> BaseBackend:
        """Return the first available backend.

        Args:
            preferred_order: Identities to try in order (default: configured order).
            force: Probe only this identity.

        Raises:
            UnknownBackendError: If an identity is not configured.
            AllBackendsUnavailableError: If no candidate passes its probe.
        """
        if force is not None:
            candidates = [self.get(force)]
        else:
            order = list(preferred_order) if preferred_order is not None else self.identities
            candidates = [self.get(identity) for identity in order]

        if not candidates:
            raise AllBackendsUnavailableError([], "No analysis backend is configured.")

        tried: list[str] = []
        for backend in candidates:
            tried.append(backend.identity)
            if await self.probe(backend):
                first = candidates[0].identity
                if backend.identity != first:
                    logger.warning("Backend %s unavailable, falling back to %s", first, backend.identity)
                    if self._on_fallback is not None:
                        self._on_fallback(first, backend.identity)
                logger.info("Selected backend %s", backend.model_id)
                return backend
            logger.info("Backend %s unavailable", backend.identity)

        raise AllBackendsUnavailableError(tried)
