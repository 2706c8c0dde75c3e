# src/cache/cache_factory.py - v3
"""Factory for cache store instantiation."""

from __future__ import annotations

from datetime import timedelta

from promptaudit.backends.templates import INSTRUCTION_TEMPLATE_HASH
from promptaudit.cache.json_store import JsonResultCache
from promptaudit.config.settings import Settings


def create_cache_store(
    settings: Settings,
    template_hash: str = INSTRUCTION_TEMPLATE_HASH,
) -> JsonResultCache:
    """Instantiate the result cache configured by `settings`.

    Args:
        settings: Application settings (cache root and TTL).
        template_hash: Digest of the instruction templates in use.
    """
    return JsonResultCache(
        cache_root=settings.resolved_cache_root,
        template_hash=template_hash,
        ttl=timedelta(hours=settings.cache_ttl_hours),
    )
