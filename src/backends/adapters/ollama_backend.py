# src/backends/adapters/ollama_backend.py - v2
"""Local Ollama analysis backend.

Uses the ollama Python SDK. Small local models cope badly with long inputs
and rich schemas, so the model name picks a size strategy: micro and small
models get tight batches and the minimal JSON schema; larger models get the
full schema.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal, Sequence

import httpx

from promptaudit.backends.base_backend import BaseBackend
from promptaudit.backends.errors import TransientBackendError, error_from_status
from promptaudit.backends.response_parser import parse_analysis_payload
from promptaudit.backends.templates import (
    SYSTEM_PROMPT_FULL,
    SYSTEM_PROMPT_MINIMAL,
    build_user_prompt,
)
from promptaudit.batching.batcher import PackingPolicy
from promptaudit.core.models import AnalysisResult, ProjectContext

logger = logging.getLogger(__name__)

StrategyName = Literal["micro", "small", "standard"]


@dataclass(frozen=True)
class ModelStrategy:
    """Batch limits and schema choice for a model size class."""

    name: StrategyName
    token_budget: int
    max_prompts: int | None
    minimal_schema: bool


STRATEGIES: dict[str, ModelStrategy] = {
    "micro": ModelStrategy("micro", token_budget=1_500, max_prompts=3, minimal_schema=True),
    "small": ModelStrategy("small", token_budget=3_000, max_prompts=10, minimal_schema=True),
    "standard": ModelStrategy("standard", token_budget=28_000, max_prompts=None, minimal_schema=False),
}

# Exact names first, then substring matches; unknown models default to micro.
MODEL_STRATEGY_MAP: dict[str, StrategyName] = {
    "llama3.2": "micro",
    "phi3:mini": "micro",
    "gemma3:4b": "micro",
    "gemma2:2b": "micro",
    "mistral:7b": "small",
    "llama3:8b": "small",
    "codellama:7b": "small",
    "llama3:70b": "standard",
    "mixtral": "standard",
    "qwen2.5:14b": "standard",
}


def detect_strategy(model: str) -> ModelStrategy:
    """Pick the size strategy for an Ollama model name."""
    if model in MODEL_STRATEGY_MAP:
        return STRATEGIES[MODEL_STRATEGY_MAP[model]]
    for pattern, name in MODEL_STRATEGY_MAP.items():
        if pattern in model:
            return STRATEGIES[name]
    return STRATEGIES["micro"]


class OllamaBackend(BaseBackend):
    """Ollama local inference backend."""

    def __init__(
        self,
        model: str = "llama3.2",
        host: str = "http://localhost:11434",
        temperature: float = 0.3,
        **kwargs: Any,
    ):
        self._model = model
        self._host = host
        self._temperature = temperature
        self._strategy = detect_strategy(model)
        self.__client = None
        logger.debug(
            "Ollama model %s uses %s strategy (minimal schema: %s)",
            model, self._strategy.name, self._strategy.minimal_schema,
        )

    @property
    def _client(self):
        """Lazy-init the async SDK client (only on first call)."""
        if self.__client is None:
            import ollama

            self.__client = ollama.AsyncClient(host=self._host)
        return self.__client

    @property
    def identity(self) -> str:
        return "ollama"

    @property
    def model(self) -> str:
        return self._model

    @property
    def strategy(self) -> ModelStrategy:
        return self._strategy

    @property
    def token_budget_per_batch(self) -> int:
        return self._strategy.token_budget

    @property
    def max_prompts_per_batch(self) -> int | None:
        return self._strategy.max_prompts

    @property
    def prioritization(self) -> PackingPolicy:
        return "priority"

    async def is_available(self) -> bool:
        """True when the server answers and has the configured model pulled."""
        try:
            response = await self._client.list()
        except Exception as e:
            logger.debug("Ollama at %s unreachable: %s", self._host, e)
            return False

        names = [_model_name(m) for m in (response.get("models") or [])]
        available = any(self._model in name for name in names)
        if not available:
            logger.debug("Model %s not found among %d Ollama model(s)", self._model, len(names))
        return available

    async def analyze(
        self, prompts: Sequence[str], date: str, context: ProjectContext | None = None,
    ) -> AnalysisResult:
        import ollama

        system = SYSTEM_PROMPT_MINIMAL if self._strategy.minimal_schema else SYSTEM_PROMPT_FULL
        user_prompt = build_user_prompt(prompts, date, context)

        try:
            resp = await self._client.generate(
                model=self._model,
                prompt=user_prompt,
                system=system,
                format="json",
                options={"temperature": self._temperature},
            )
        except ollama.ResponseError as e:
            raise error_from_status(
                e.status_code, f"Ollama request failed: {e.error}", backend="ollama",
            ) from e
        except (httpx.TransportError, ConnectionError) as e:
            raise TransientBackendError(
                f"Ollama connection failed: {e}", backend="ollama",
            ) from e

        text = resp.get("response")
        if not isinstance(text, str):
            raise error_from_status(502, "Invalid response format from Ollama API", backend="ollama")
        return parse_analysis_payload(text, date, prompt_count=len(prompts))


def _model_name(entry: Any) -> str:
    return entry.get("model") or entry.get("name") or ""
