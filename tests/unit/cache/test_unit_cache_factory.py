# tests/unit/cache/test_unit_cache_factory.py - v4
"""Tests for cache/cache_factory.py."""

from __future__ import annotations

from datetime import timedelta

from promptaudit.backends.templates import INSTRUCTION_TEMPLATE_HASH
from promptaudit.cache.cache_factory import create_cache_store
from promptaudit.cache.json_store import JsonResultCache
from promptaudit.config.settings import Settings


class TestCreateCacheStore:
    def test_from_settings(self, tmp_path):
        s = Settings(_env_file=None, cache_root=tmp_path, cache_ttl_hours=24)
        store = create_cache_store(s)
        assert isinstance(store, JsonResultCache)
        assert store.root == tmp_path
        assert store.ttl == timedelta(hours=24)

    def test_default_template_hash(self, tmp_path):
        store = create_cache_store(Settings(_env_file=None, cache_root=tmp_path))
        assert store._template_hash == INSTRUCTION_TEMPLATE_HASH
