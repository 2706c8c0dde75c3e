# src/backends/base_backend.py - v2
"""Abstract analysis backend interface.

A backend turns an ordered list of prompt texts into one AnalysisResult.
Concrete variants live in backends/adapters/ and are created through
backends/backend_factory.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from promptaudit.batching.batcher import PackingPolicy
from promptaudit.core.models import AnalysisResult, ProjectContext


class BaseBackend(ABC):
    """Unified interface for local and hosted analysis services."""

    @property
    @abstractmethod
    def identity(self) -> str:
        """Backend identifier (ollama, anthropic, google)."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Model name used for analysis requests."""

    @property
    def model_id(self) -> str:
        """Cache-scoping id: results from different models never mix."""
        return f"{self.identity}:{self.model}"

    @property
    @abstractmethod
    def token_budget_per_batch(self) -> int:
        """Maximum estimated input tokens per request."""

    @property
    def max_prompts_per_batch(self) -> int | None:
        """Optional cap on prompts per request."""
        return None

    @property
    def prioritization(self) -> PackingPolicy:
        """Packing policy the batcher should use for this backend."""
        return "chronological"

    @abstractmethod
    async def is_available(self) -> bool:
        """Cheap reachability probe. Must not raise for "unreachable"."""

    @abstractmethod
    async def analyze(
        self, prompts: Sequence[str], date: str, context: ProjectContext | None = None,
    ) -> AnalysisResult:
        """Analyze one batch of prompt texts.

        Args:
            prompts: Prompt texts in batch order.
            date: Report date (YYYY-MM-DD).
            context: Optional project description included in the request.

        Raises:
            TransientBackendError: Retryable failure.
            FatalBackendError: Non-retryable failure, including unusable responses.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model_id={self.model_id!r})"
