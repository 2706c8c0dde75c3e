# src/backends/adapters/google_backend.py - v2
"""Google Gemini analysis backend.

Uses the google-generativeai SDK. API failures surface as
google.api_core exceptions carrying an HTTP-like `code`.
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

_PROBE_OK_STATUSES = {400, 429}


class GoogleBackend(BaseBackend):
    """Google Gemini backend."""

    def __init__(
        self,
        model: str = "gemini-2.0-flash",
        api_key: str = "",
        max_output_tokens: int = 8192,
        token_budget: int = 498_000,
        **kwargs: Any,
    ):
        self._model = model
        self._api_key = api_key
        self._max_output_tokens = max_output_tokens
        self._token_budget = token_budget

    @property
    def identity(self) -> str:
        return "google"

    @property
    def model(self) -> str:
        return self._model

    @property
    def token_budget_per_batch(self) -> int:
        return self._token_budget

    def _generative_model(self, system: str | None = None):
        import google.generativeai as genai

        genai.configure(api_key=self._api_key)
        return genai.GenerativeModel(self._model, system_instruction=system)

    async def is_available(self) -> bool:
        from google.api_core import exceptions as gexc

        if not self._api_key:
            logger.debug("Google API key not configured")
            return False
        try:
            await self._generative_model().generate_content_async(
                "ping", generation_config={"max_output_tokens": 1},
            )
        except gexc.GoogleAPICallError as e:
            if e.code in _PROBE_OK_STATUSES:
                return True
            logger.debug("Google probe rejected with status %s", e.code)
            return False
        except Exception as e:
            logger.debug("Google probe failed: %s", e)
            return False
        return True

    async def analyze(
        self, prompts: Sequence[str], date: str, context: ProjectContext | None = None,
    ) -> AnalysisResult:
        from google.api_core import exceptions as gexc

        model = self._generative_model(system=SYSTEM_PROMPT_FULL)
        gen_config: dict[str, Any] = {
            "max_output_tokens": self._max_output_tokens,
            "temperature": 0.3,
            "response_mime_type": "application/json",
        }
        try:
            resp = await model.generate_content_async(
                build_user_prompt(prompts, date, context), generation_config=gen_config,
            )
        except gexc.GoogleAPICallError as e:
            raise error_from_status(
                e.code or 500, f"Google request failed: {e.message}", backend="google",
            ) from e
        except (gexc.RetryError, ConnectionError, TimeoutError) as e:
            raise TransientBackendError(f"Google connection failed: {e}", backend="google") from e

        try:
            text = resp.text
        except ValueError as e:
            # Raised by the SDK when the candidate was blocked or empty.
            raise error_from_status(422, f"Google returned no text: {e}", backend="google") from e
        return parse_analysis_payload(text or "", date, prompt_count=len(prompts))
