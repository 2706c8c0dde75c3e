# tests/unit/api/test_unit_facade.py - v3
"""Tests for api/facade.py - wiring and end-to-end analysis with fakes."""

from __future__ import annotations

import logging

import pytest

from promptaudit.api import facade
from promptaudit.api.facade import analyze, build_orchestrator
from promptaudit.backends import backend_factory
from promptaudit.cache.json_store import JsonResultCache
from promptaudit.config.settings import Settings
from promptaudit.core.models import ProjectContext
from promptaudit.pipeline.models import NoPromptsError
from tests.conftest import SAMPLE_DATE, FakeBackend, make_pattern, make_result


def _settings(tmp_path, **kwargs) -> Settings:
    return Settings(_env_file=None, cache_root=tmp_path / "cache", **kwargs)


@pytest.fixture
def patched_backends(monkeypatch):
    """Replace configured backends with in-memory fakes."""
    backends: list[FakeBackend] = []

    def fake_create_backends(settings, services=None):
        return backends

    monkeypatch.setattr(facade, "create_backends", fake_create_backends)
    return backends


class TestBuildOrchestrator:
    def test_uses_configured_cache(self, tmp_path, patched_backends):
        patched_backends.append(FakeBackend())
        orchestrator = build_orchestrator(_settings(tmp_path))
        assert isinstance(orchestrator._cache, JsonResultCache)
        assert orchestrator._cache.root == tmp_path / "cache"

    def test_real_adapters_created_lazily(self, tmp_path):
        orchestrator = build_orchestrator(_settings(tmp_path), services=["ollama", "google"])
        assert orchestrator._registry.identities == ["ollama", "google"]


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_end_to_end(self, tmp_path, sample_prompts, patched_backends):
        patched_backends.append(FakeBackend(max_prompts=4))
        outcome = await analyze(sample_prompts, SAMPLE_DATE, settings=_settings(tmp_path))
        assert outcome.batch_count == 3
        assert outcome.result.stats.total_prompts == 10
        entries = [p for p in (tmp_path / "cache").glob("*.json") if not p.name.startswith(".")]
        assert len(entries) == 3

    @pytest.mark.asyncio
    async def test_settings_overrides_reach_batching(self, tmp_path, sample_prompts, patched_backends):
        backend = FakeBackend(max_prompts=4)
        patched_backends.append(backend)
        await analyze(sample_prompts, SAMPLE_DATE, settings=_settings(tmp_path, max_prompts_per_batch=2))
        assert len(backend.calls) == 5

    @pytest.mark.asyncio
    async def test_pattern_rules_applied(self, tmp_path, sample_prompts, patched_backends):
        def responder(texts, date):
            return make_result(total=len(texts), date=date, patterns=[
                make_pattern("imperative", severity="low"),
                make_pattern("vague", severity="medium"),
            ])

        patched_backends.append(FakeBackend(responder=responder))
        settings = _settings(tmp_path, disabled_patterns="vague", severity_overrides="imperative:high")
        outcome = await analyze(sample_prompts, SAMPLE_DATE, settings=settings)
        assert [(p.id, p.severity) for p in outcome.result.patterns] == [("imperative", "high")]

    @pytest.mark.asyncio
    async def test_fallback_to_second_backend(self, tmp_path, sample_prompts, patched_backends, caplog):
        patched_backends.extend([
            FakeBackend(identity="first", available=False),
            FakeBackend(identity="second"),
        ])
        with caplog.at_level(logging.WARNING, logger="promptaudit"):
            outcome = await analyze(sample_prompts, SAMPLE_DATE, settings=_settings(tmp_path))
        assert outcome.backend == "second:fake-model"
        fallback_warnings = [
            r for r in caplog.records
            if r.levelno == logging.WARNING and "falling back" in r.getMessage()
        ]
        assert len(fallback_warnings) == 1

    @pytest.mark.asyncio
    async def test_context_from_settings(self, tmp_path, sample_prompts, patched_backends):
        backend = FakeBackend(max_prompts=5)
        patched_backends.append(backend)
        settings = _settings(tmp_path, context_domain="payments", context_tech_stack="Go,gRPC")
        await analyze(sample_prompts, SAMPLE_DATE, settings=settings)
        assert backend.contexts == [
            ProjectContext(domain="payments", tech_stack=("Go", "gRPC")),
        ] * 2

    @pytest.mark.asyncio
    async def test_explicit_context_wins(self, tmp_path, sample_prompts, patched_backends):
        backend = FakeBackend(max_prompts=10)
        patched_backends.append(backend)
        context = ProjectContext(role="student")
        settings = _settings(tmp_path, context_domain="payments")
        await analyze(sample_prompts, SAMPLE_DATE, settings=settings, context=context)
        assert backend.contexts == [context]

    @pytest.mark.asyncio
    async def test_no_context_by_default(self, tmp_path, sample_prompts, patched_backends):
        backend = FakeBackend(max_prompts=10)
        patched_backends.append(backend)
        await analyze(sample_prompts, SAMPLE_DATE, settings=_settings(tmp_path))
        assert backend.contexts == [None]

    @pytest.mark.asyncio
    async def test_no_prompts(self, tmp_path, patched_backends):
        patched_backends.append(FakeBackend())
        with pytest.raises(NoPromptsError):
            await analyze([], SAMPLE_DATE, settings=_settings(tmp_path))

    @pytest.mark.asyncio
    async def test_registered_custom_backend(self, tmp_path, sample_prompts, monkeypatch):
        monkeypatch.setitem(backend_factory._BACKEND_REGISTRY, "fake", "tests.conftest.FakeBackend")
        outcome = await analyze(
            sample_prompts, SAMPLE_DATE, settings=_settings(tmp_path), services=["fake"],
        )
        assert outcome.backend == "fake:fake-model"
