# src/backends/adapters/anthropic_backend.py - v2
"""Anthropic Claude analysis backend.

Uses the official anthropic SDK with SDK-level retries disabled; retry and
pacing belong to the orchestrator.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from promptaudit.backends.base_backend import BaseBackend
from promptaudit.backends.errors import TransientBackendError, error_from_status
from promptaudit.backends.response_parser import parse_analysis_payload
from promptaudit.backends.templates import SYSTEM_PROMPT_FULL, build_user_prompt
from promptaudit.core.models import AnalysisResult, ProjectContext

logger = logging.getLogger(__name__)

# Status codes that prove the key was accepted even though the probe failed.
_PROBE_OK_STATUSES = {400, 429}


class AnthropicBackend(BaseBackend):
    """Backend for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-3-5-haiku-latest",
        api_key: str | None = None,
        max_output_tokens: int = 4096,
        token_budget: int = 98_000,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._max_output_tokens = max_output_tokens
        self._token_budget = token_budget
        self.__client = None

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            import anthropic

            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key or "", max_retries=0)
        return self.__client

    @property
    def identity(self) -> str:
        return "anthropic"

    @property
    def model(self) -> str:
        return self._model

    @property
    def token_budget_per_batch(self) -> int:
        return self._token_budget

    async def is_available(self) -> bool:
        """Send a 1-token request; only rejected credentials mean unavailable."""
        import anthropic

        if not self._api_key:
            logger.debug("Anthropic API key not configured")
            return False
        try:
            await self._client.messages.create(
                model=self._model,
                max_tokens=1,
                messages=[{"role": "user", "content": "ping"}],
            )
        except anthropic.APIStatusError as e:
            if e.status_code in _PROBE_OK_STATUSES:
                return True
            logger.debug("Anthropic probe rejected with status %s", e.status_code)
            return False
        except anthropic.APIError as e:
            logger.debug("Anthropic probe failed: %s", e)
            return False
        return True

    async def analyze(
        self, prompts: Sequence[str], date: str, context: ProjectContext | None = None,
    ) -> AnalysisResult:
        """Analyze one batch via the Messages API."""
        import anthropic

        user_prompt = build_user_prompt(prompts, date, context)
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=self._max_output_tokens,
                temperature=0.3,
                system=SYSTEM_PROMPT_FULL,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIStatusError as e:
            raise error_from_status(
                e.status_code, f"Anthropic request failed: {e.message}", backend="anthropic",
            ) from e
        except anthropic.APIConnectionError as e:
            raise TransientBackendError(
                f"Anthropic connection failed: {e}", backend="anthropic",
            ) from e

        return parse_analysis_payload(_extract_text(response), date, prompt_count=len(prompts))


def _extract_text(response: Any) -> str:
    """Concatenate the text blocks of a Messages API response."""
    return "".join(
        block.text for block in response.content if getattr(block, "type", None) == "text"
    )
