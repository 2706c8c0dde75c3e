# src/api/facade.py - v3
"""Public API facade: single entry point for prompt analysis.

Usage:
    from promptaudit.api.facade import analyze
    outcome = await analyze(prompts, "2025-01-15")
"""

from __future__ import annotations

import logging
from typing import Sequence

from promptaudit.backends.backend_factory import create_backends
from promptaudit.backends.rate_limiter import RateLimiter
from promptaudit.backends.registry import BackendRegistry, FallbackCallback
from promptaudit.backends.retry import RetryPolicy
from promptaudit.cache.base_cache_store import BaseCacheStore
from promptaudit.cache.cache_factory import create_cache_store
from promptaudit.config.settings import Settings
from promptaudit.core.models import ProjectContext, Prompt
from promptaudit.pipeline.aggregator import PatternRules, ResultAggregator
from promptaudit.pipeline.models import OrchestrationResult
from promptaudit.pipeline.orchestrator import AnalysisOrchestrator, ProgressCallback

logger = logging.getLogger(__name__)


def build_orchestrator(
    settings: Settings,
    services: Sequence[str] | None = None,
    cache_store: BaseCacheStore | None = None,
    on_fallback: FallbackCallback | None = None,
) -> AnalysisOrchestrator:
    """Wire backends, cache, limiter, retry and aggregator from settings.

    Args:
        settings: Application settings.
        services: Backend identities to configure (default: settings.services_list).
        cache_store: Cache to use. Built from settings if None.
        on_fallback: Called when the first-choice backend is unavailable.
            The registry logs every fallback itself.
    """
    backends = create_backends(settings, list(services) if services else None)
    registry = BackendRegistry(
        backends, probe_timeout_s=settings.probe_timeout_s, on_fallback=on_fallback,
    )
    rules = PatternRules(
        disabled=set(settings.disabled_patterns_list),
        severity_overrides=settings.severity_overrides_map,  # type: ignore[arg-type]
    )
    return AnalysisOrchestrator(
        registry=registry,
        cache=cache_store or create_cache_store(settings),
        rate_limiter=RateLimiter(settings.rate_limits),
        retry_policy=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay_s=settings.retry_base_delay_s,
            max_delay_s=settings.retry_max_delay_s,
        ),
        aggregator=ResultAggregator(rules=rules),
        request_timeout_s=settings.request_timeout_s,
        bypass_cache=settings.bypass_cache,
        split_failed_batches=settings.split_failed_batches,
        token_budget_override=settings.batch_token_budget or None,
        max_prompts_override=settings.max_prompts_per_batch or None,
    )


async def analyze(
    prompts: Sequence[Prompt],
    date: str,
    settings: Settings | None = None,
    services: Sequence[str] | None = None,
    force_backend: str | None = None,
    cache_store: BaseCacheStore | None = None,
    on_progress: ProgressCallback | None = None,
    context: ProjectContext | None = None,
) -> OrchestrationResult:
    """Analyze one day's prompts end-to-end and return the merged report.

    Args:
        prompts: Chronologically ordered, already-sanitized prompts.
        date: Report date (YYYY-MM-DD).
        settings: Global settings. Loaded from .env if None.
        services: Backend preference order (overrides settings).
        force_backend: Use only this backend identity.
        cache_store: Cache to use instead of the configured one.
        on_progress: Called with (done, total) after each batch.
        context: Project description sent with every batch
            (default: settings.project_context).

    Raises:
        NoPromptsError: If `prompts` is empty.
        AllBackendsUnavailableError: If no backend is reachable.
        BackendAuthenticationError: If the backend rejects credentials.
        AllBatchesFailedError: If every batch failed.
    """
    settings = settings or Settings()
    orchestrator = build_orchestrator(settings, services=services, cache_store=cache_store)

    logger.info("Starting analysis: date=%s, prompts=%d", date, len(prompts))
    return await orchestrator.run(
        prompts, date, force_backend=force_backend,
        on_progress=on_progress,
        context=context if context is not None else settings.project_context,
    )
