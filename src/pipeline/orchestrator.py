# src/pipeline/orchestrator.py - v3
"""Analysis orchestrator: batches, cache, pacing, retry and merge.

Drives one analysis run:
  1. Select a backend (availability probing + preference order)
  2. Pack prompts into batches using the backend's budget and policy
  3. Per batch, sequentially: cache lookup, else paced and retried backend
     call, then cache store
  4. Merge every successful batch result into one report

A failing batch never aborts the run unless credentials were rejected.
Unexpected exceptions raised by a backend count as fatal batch failures.
Depending on configuration it is split in half and retried as two smaller
batches, or skipped with a warning.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

from promptaudit.backends.base_backend import BaseBackend
from promptaudit.backends.errors import (
    BackendAuthenticationError,
    BackendError,
    FatalBackendError,
    RetryExhaustedError,
)
from promptaudit.backends.rate_limiter import RateLimiter
from promptaudit.backends.registry import BackendRegistry
from promptaudit.backends.retry import RetryExecutor, RetryPolicy
from promptaudit.batching.batcher import pack
from promptaudit.cache.base_cache_store import BaseCacheStore
from promptaudit.core.models import AnalysisResult, ProjectContext, Prompt
from promptaudit.logging.context import (
    clear_context,
    set_backend_context,
    set_batch_context,
    set_run_context,
)
from promptaudit.pipeline.aggregator import ResultAggregator
from promptaudit.pipeline.models import (
    AllBatchesFailedError,
    BatchWarning,
    NoPromptsError,
    OrchestrationResult,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class _RunState:
    context: ProjectContext | None = None
    cache_scope: str = ""
    results: list[AnalysisResult] = field(default_factory=list)
    warnings: list[BatchWarning] = field(default_factory=list)
    cached: int = 0
    analyzed: int = 0
    skipped_prompts: int = 0


class AnalysisOrchestrator:
    """Top-level driver for a single analysis run.

    Args:
        registry: Configured backends and selection logic.
        cache: Optional result cache (None disables caching).
        rate_limiter: Per-backend pacing (default: unpaced).
        retry_policy: Backoff for transient failures.
        aggregator: Merges batch results (default settings if omitted).
        request_timeout_s: Upper bound for one backend call attempt.
        bypass_cache: Skip cache reads and writes for this orchestrator.
        split_failed_batches: Retry a failed multi-prompt batch as two halves.
        token_budget_override: Replaces the backend's token budget when set.
        max_prompts_override: Replaces the backend's prompt cap when set.
        sleep: Sleep used between retries (injectable for tests).
    """

    def __init__(
        self,
        registry: BackendRegistry,
        cache: BaseCacheStore | None = None,
        rate_limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        aggregator: ResultAggregator | None = None,
        request_timeout_s: float = 60.0,
        bypass_cache: bool = False,
        split_failed_batches: bool = True,
        token_budget_override: int | None = None,
        max_prompts_override: int | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._rate_limiter = rate_limiter or RateLimiter()
        self._retry_policy = retry_policy or RetryPolicy()
        self._aggregator = aggregator or ResultAggregator()
        self._request_timeout_s = request_timeout_s
        self._bypass_cache = bypass_cache
        self._split_failed_batches = split_failed_batches
        self._token_budget_override = token_budget_override
        self._max_prompts_override = max_prompts_override
        self._sleep = sleep

    async def run(
        self,
        prompts: Sequence[Prompt],
        date: str,
        preferred_order: Sequence[str] | None = None,
        force_backend: str | None = None,
        on_progress: ProgressCallback | None = None,
        context: ProjectContext | None = None,
    ) -> OrchestrationResult:
        """Analyse prompts and return the merged report.

        Args:
            prompts: Chronologically ordered prompts for `date`.
            date: Report date (YYYY-MM-DD).
            preferred_order: Backend identities to try, in order.
            force_backend: Use only this backend identity.
            on_progress: Called with (done, total) after each batch.
            context: Optional project description sent with every batch.

        Raises:
            NoPromptsError: If `prompts` is empty.
            AllBackendsUnavailableError: If no backend passes its probe.
            BackendAuthenticationError: If the backend rejects credentials.
            AllBatchesFailedError: If no batch produced a result.
        """
        if not prompts:
            raise NoPromptsError()

        set_run_context(uuid.uuid4().hex[:12])
        start_time = time.monotonic()
        try:
            backend = await self._registry.select_backend(preferred_order, force=force_backend)
            set_backend_context(backend.identity)

            batches = pack(
                prompts,
                self._token_budget_override or backend.token_budget_per_batch,
                policy=backend.prioritization,
                max_prompts_per_batch=self._max_prompts_override or backend.max_prompts_per_batch,
            )
            logger.info(
                "Analyzing %d prompt(s) for %s in %d batch(es) with %s",
                len(prompts), date, len(batches), backend.model_id,
            )

            if context is not None and context.is_empty:
                context = None
            state = _RunState(context=context, cache_scope=_cache_scope(backend, context))
            for index, batch in enumerate(batches, start=1):
                set_batch_context(index, len(batches))
                await self._process_batch(backend, batch.texts, date, index, state)
                if on_progress is not None:
                    on_progress(index, len(batches))

            if not state.results:
                raise AllBatchesFailedError(state.warnings)

            report = self._aggregator.merge(state.results, date)
        finally:
            clear_context()

        logger.info(
            "Analysis complete: %d batch(es) (%d cached, %d analyzed, %d warning(s)) in %.1fs",
            len(batches), state.cached, state.analyzed, len(state.warnings),
            time.monotonic() - start_time,
        )
        return OrchestrationResult(
            result=report,
            backend=backend.model_id,
            batch_count=len(batches),
            cached_batches=state.cached,
            analyzed_batches=state.analyzed,
            skipped_prompts=state.skipped_prompts,
            warnings=state.warnings,
        )

    async def _process_batch(
        self,
        backend: BaseBackend,
        texts: list[str],
        date: str,
        index: int,
        state: _RunState,
    ) -> None:
        if self._cache is not None and not self._bypass_cache:
            cached = await self._cache.get_result(texts, state.cache_scope)
            if cached is not None:
                logger.debug("Cache hit for batch %d (%d prompt(s))", index, len(texts))
                state.results.append(cached)
                state.cached += 1
                return

        try:
            result = await self._analyze(backend, texts, date, state.context)
        except BackendAuthenticationError:
            raise
        except (FatalBackendError, RetryExhaustedError) as e:
            if self._split_failed_batches and len(texts) > 1:
                middle = len(texts) // 2
                logger.warning(
                    "Batch %d failed (%s), retrying as halves of %d and %d prompt(s)",
                    index, e, middle, len(texts) - middle,
                )
                await self._process_batch(backend, texts[:middle], date, index, state)
                await self._process_batch(backend, texts[middle:], date, index, state)
                return

            logger.warning("Skipping %d prompt(s) of batch %d: %s", len(texts), index, e)
            state.warnings.append(
                BatchWarning(
                    batch_index=index,
                    prompt_count=len(texts),
                    error_type=type(e).__name__,
                    message=str(e),
                )
            )
            state.skipped_prompts += len(texts)
            return

        state.results.append(result)
        state.analyzed += 1
        if self._cache is not None and not self._bypass_cache:
            await self._cache.put_result(texts, state.cache_scope, result)

    async def _analyze(
        self,
        backend: BaseBackend,
        texts: list[str],
        date: str,
        context: ProjectContext | None,
    ) -> AnalysisResult:
        """One paced, bounded, retried backend call.

        Exceptions outside the BackendError family are wrapped in
        FatalBackendError once retries are settled.
        """
        retry = RetryExecutor(self._retry_policy, sleep=self._sleep, label=backend.identity)

        async def attempt() -> AnalysisResult:
            return await self._rate_limiter.throttle(
                backend.identity,
                lambda: asyncio.wait_for(
                    backend.analyze(texts, date, context), timeout=self._request_timeout_s,
                ),
            )

        try:
            return await retry.run(attempt)
        except BackendError:
            raise
        except Exception as e:
            logger.debug("Unexpected %s from %s", type(e).__name__, backend.identity, exc_info=True)
            raise FatalBackendError(
                f"{type(e).__name__}: {e}", backend=backend.identity,
            ) from e


def _cache_scope(backend: BaseBackend, context: ProjectContext | None) -> str:
    """Model id, extended with the context digest when a context is used."""
    if context is None:
        return backend.model_id
    return f"{backend.model_id}#ctx:{context.digest()}"
