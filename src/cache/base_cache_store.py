# src/cache/base_cache_store.py - v2
"""Abstract result cache interface.

Implementations never raise on I/O problems: a failed read is a miss and a
failed write returns False, so the cache can only ever cost a backend call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Sequence

from promptaudit.cache.models import CacheEntry
from promptaudit.core.models import AnalysisResult


class BaseCacheStore(ABC):
    """Unified interface for analysis result caches."""

    @abstractmethod
    async def get(
        self,
        key: str,
        model_id: str | None = None,
        prompt_count: int | None = None,
    ) -> CacheEntry | None:
        """Return a valid entry or None (missing, expired, mismatched, corrupt)."""

    @abstractmethod
    async def put(self, key: str, entry: CacheEntry) -> bool:
        """Store an entry. Returns False if it could not be persisted."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove an entry if present."""

    @abstractmethod
    async def invalidate_all(self) -> int:
        """Remove every entry. Returns the number of files removed."""

    @abstractmethod
    async def sweep_expired(self, ttl: timedelta | None = None) -> int:
        """Remove expired or unreadable entries. Returns the number removed."""

    @abstractmethod
    async def list_keys(self) -> list[str]:
        """Keys of all stored entries."""

    @abstractmethod
    async def get_result(self, prompts: Sequence[str], model_id: str) -> AnalysisResult | None:
        """Valid cached result for an ordered batch of prompt texts, if any."""

    @abstractmethod
    async def put_result(
        self, prompts: Sequence[str], model_id: str, result: AnalysisResult,
    ) -> bool:
        """Cache the result for an ordered batch of prompt texts."""
