# tests/integration/conftest.py - v9
"""Shared fixtures for integration tests.

Everything runs in-process against the real parser, cache, limiter and
orchestrator. Only the model call is scripted, except for tests marked
`ollama`, which talk to a live Ollama server and are skipped unless
PROMPTAUDIT_IT_OLLAMA_HOST is set.
"""

from __future__ import annotations

import os
from typing import Sequence

import pytest

from promptaudit.backends.response_parser import parse_analysis_payload
from promptaudit.core.models import AnalysisResult, ProjectContext
from tests.conftest import FakeBackend

OLLAMA_IT_HOST = os.environ.get("PROMPTAUDIT_IT_OLLAMA_HOST", "")
OLLAMA_IT_MODEL = os.environ.get("PROMPTAUDIT_IT_OLLAMA_MODEL", "qwen2.5:0.5b")


def pytest_configure(config):
    config.addinivalue_line("markers", "ollama: requires a reachable Ollama server")


class ScriptedTextBackend(FakeBackend):
    """Backend replaying raw model replies through the real response parser.

    Replies are consumed in call order. A reply that is an exception
    instance is raised instead of parsed.
    """

    def __init__(self, replies: Sequence[str | BaseException], **kwargs) -> None:
        super().__init__(**kwargs)
        self._replies = list(replies)

    async def analyze(
        self, prompts: Sequence[str], date: str, context: ProjectContext | None = None,
    ) -> AnalysisResult:
        self.calls.append(list(prompts))
        self.contexts.append(context)
        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return parse_analysis_payload(reply, date, len(prompts))


@pytest.fixture
def ollama_host() -> str:
    if not OLLAMA_IT_HOST:
        pytest.skip("PROMPTAUDIT_IT_OLLAMA_HOST not set")
    return OLLAMA_IT_HOST
