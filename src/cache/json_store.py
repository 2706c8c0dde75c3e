# src/cache/json_store.py - v3
"""JSON file-based result cache (default cache store).

Layout under the cache root:
  <key>.json       one CacheEntry per analysed batch
  .metadata.json   CacheMetadata (instruction template hash, last update)

Every get/put first checks the persisted template hash. When the
instruction templates changed since the entries were written, all entries
are dropped before the operation proceeds.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Sequence

from promptaudit.cache.atomic_io import TEMP_SUFFIX, write_text_atomic
from promptaudit.cache.base_cache_store import BaseCacheStore
from promptaudit.cache.fingerprint import generate_cache_key
from promptaudit.cache.models import CacheEntry, CacheMetadata
from promptaudit.core.models import AnalysisResult

logger = logging.getLogger(__name__)

METADATA_FILE = ".metadata.json"
DEFAULT_TTL = timedelta(days=7)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JsonResultCache(BaseCacheStore):
    """File-based cache store using one JSON file per batch result."""

    def __init__(
        self,
        cache_root: Path,
        template_hash: str,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._root = Path(cache_root).expanduser()
        self._template_hash = template_hash
        self._ttl = ttl
        self._clock = clock

    @property
    def root(self) -> Path:
        return self._root

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    # --- BaseCacheStore ---

    async def get(
        self,
        key: str,
        model_id: str | None = None,
        prompt_count: int | None = None,
    ) -> CacheEntry | None:
        """Retrieve a valid cache entry by key."""
        self._check_template_hash()

        path = self._entry_path(key)
        if not path.exists():
            return None
        entry = self._read_entry(path)
        if entry is None:
            return None

        if entry.template_hash != self._template_hash:
            logger.debug("Cache entry %s written under another template, ignoring", key[:12])
            return None
        if self._is_expired(entry, self._ttl):
            logger.debug("Cache entry %s expired", key[:12])
            return None
        if model_id is not None and entry.backend_model_id != model_id:
            return None
        if prompt_count is not None and entry.prompt_count != prompt_count:
            return None
        return entry

    async def put(self, key: str, entry: CacheEntry) -> bool:
        """Store a cache entry atomically. Never raises."""
        try:
            self._check_template_hash()
            write_text_atomic(self._entry_path(key), entry.model_dump_json(indent=2, by_alias=True))
        except OSError as e:
            logger.warning("Failed to write cache entry %s: %s", key[:12], e)
            return False
        return True

    async def delete(self, key: str) -> None:
        """Remove a cache entry. Never raises."""
        try:
            self._entry_path(key).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to remove cache entry %s: %s", key[:12], e)

    async def invalidate_all(self) -> int:
        """Remove every entry and stray temp file. Metadata survives."""
        removed = self._invalidate_sync()
        logger.info("Invalidated %d cache file(s) under %s", removed, self._root)
        return removed

    async def sweep_expired(self, ttl: timedelta | None = None) -> int:
        """Remove entries older than `ttl` (default: store TTL) or unreadable."""
        if not self._root.is_dir():
            return 0

        max_age = self._ttl if ttl is None else ttl
        removed = 0
        for path in self._entry_files():
            entry = self._read_entry(path)
            if entry is not None and not self._is_expired(entry, max_age):
                continue
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Failed to remove cache entry %s: %s", path.name, e)
        logger.info("Swept %d expired or corrupt cache entr(ies)", removed)
        return removed

    async def list_keys(self) -> list[str]:
        """Keys of all stored entries."""
        if not self._root.is_dir():
            return []
        return sorted(p.stem for p in self._entry_files())

    # --- Convenience ---

    async def get_result(self, prompts: Sequence[str], model_id: str) -> AnalysisResult | None:
        """Cached result for an ordered batch of prompt texts, if valid."""
        key = generate_cache_key(prompts, model_id)
        entry = await self.get(key, model_id=model_id, prompt_count=len(prompts))
        return entry.result if entry is not None else None

    async def put_result(
        self, prompts: Sequence[str], model_id: str, result: AnalysisResult,
    ) -> bool:
        """Cache the result of analysing an ordered batch of prompt texts."""
        entry = CacheEntry(
            result=result,
            cached_at=self._clock(),
            backend_model_id=model_id,
            prompt_count=len(prompts),
            template_hash=self._template_hash,
        )
        return await self.put(generate_cache_key(prompts, model_id), entry)

    # --- Internal helpers ---

    def _check_template_hash(self) -> None:
        """Invalidate everything when the instruction templates changed."""
        metadata = self._read_metadata()
        if metadata is not None and metadata.template_hash == self._template_hash:
            return

        if metadata is not None:
            logger.info("Instruction templates changed, invalidating analysis cache")
            self._invalidate_sync()
        try:
            self._write_metadata()
        except OSError as e:
            logger.warning("Failed to write cache metadata: %s", e)

    def _invalidate_sync(self) -> int:
        if not self._root.is_dir():
            return 0

        removed = 0
        for path in [*self._entry_files(), *self._root.glob(f"*{TEMP_SUFFIX}")]:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Failed to remove cache file %s: %s", path.name, e)
        return removed

    def _read_metadata(self) -> CacheMetadata | None:
        path = self._root / METADATA_FILE
        if not path.exists():
            return None
        try:
            return CacheMetadata.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Unreadable cache metadata, rewriting: %s", e)
            return None

    def _write_metadata(self) -> None:
        metadata = CacheMetadata(template_hash=self._template_hash, last_updated=self._clock())
        write_text_atomic(self._root / METADATA_FILE, metadata.model_dump_json(indent=2))

    def _read_entry(self, path: Path) -> CacheEntry | None:
        try:
            return CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Failed to read cache entry %s: %s", path.name, e)
            return None

    def _is_expired(self, entry: CacheEntry, ttl: timedelta) -> bool:
        cached_at = entry.cached_at
        if cached_at.tzinfo is None:
            cached_at = cached_at.replace(tzinfo=timezone.utc)
        return self._clock() - cached_at > ttl

    def _entry_files(self) -> list[Path]:
        return [p for p in self._root.glob("*.json") if p.name != METADATA_FILE]

    def _entry_path(self, key: str) -> Path:
        """Return file path for a cache key."""
        safe_key = key.replace("/", "_").replace("\\", "_")
        return self._root / f"{safe_key}.json"
