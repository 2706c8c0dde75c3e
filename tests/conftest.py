# tests/conftest.py - v3
"""Shared test fixtures for all unit and integration tests.

Provides fake backends, sample prompts and sample batch results.
No network access: every backend is an in-memory fake.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence

import pytest

from promptaudit.backends.base_backend import BaseBackend
from promptaudit.batching.batcher import PackingPolicy
from promptaudit.core.models import (
    AnalysisResult,
    AnalysisStats,
    BeforeAfter,
    Pattern,
    Prompt,
    ProjectContext,
)

SAMPLE_DATE = "2025-01-15"


# === HELPERS ===


def make_prompt(text: str, minute: int = 0, source_id: str = "session-1") -> Prompt:
    return Prompt(
        text=text,
        timestamp=datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc) + timedelta(minutes=minute),
        source_id=source_id,
    )


def make_pattern(
    pattern_id: str,
    frequency: int = 1,
    severity: str = "medium",
    examples: Sequence[str] = (),
    suggestion: str | None = None,
) -> Pattern:
    return Pattern(
        id=pattern_id,
        name=pattern_id.replace("-", " ").title(),
        frequency=frequency,
        severity=severity,  # type: ignore[arg-type]
        examples=list(examples),
        suggestion=suggestion or f"Fix {pattern_id}",
        before_after=BeforeAfter(before="before", after="after"),
    )


def make_result(
    total: int,
    score: float = 7.0,
    patterns: Sequence[Pattern] = (),
    with_issues: int | None = None,
    top_suggestion: str = "",
    date: str = SAMPLE_DATE,
) -> AnalysisResult:
    return AnalysisResult(
        date=date,
        patterns=list(patterns),
        stats=AnalysisStats(
            total_prompts=total,
            prompts_with_issues=with_issues if with_issues is not None else min(len(patterns), total),
            overall_score=score,
        ),
        top_suggestion=top_suggestion,
    )


class FakeBackend(BaseBackend):
    """Scriptable in-memory backend.

    `responder(prompts, date)` returns an AnalysisResult or raises. By
    default every batch gets a clean result sized to the batch. The context
    passed with each call is recorded in `contexts`.
    """

    def __init__(
        self,
        identity: str = "fake",
        model: str = "fake-model",
        available: bool = True,
        token_budget: int = 1_000,
        max_prompts: int | None = None,
        policy: PackingPolicy = "chronological",
        responder: Callable[[Sequence[str], str], AnalysisResult] | None = None,
    ) -> None:
        self._identity = identity
        self._model = model
        self.available = available
        self._token_budget = token_budget
        self._max_prompts = max_prompts
        self._policy = policy
        self._responder = responder
        self.calls: list[list[str]] = []
        self.contexts: list[ProjectContext | None] = []
        self.probe_count = 0

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def model(self) -> str:
        return self._model

    @property
    def token_budget_per_batch(self) -> int:
        return self._token_budget

    @property
    def max_prompts_per_batch(self) -> int | None:
        return self._max_prompts

    @property
    def prioritization(self) -> PackingPolicy:
        return self._policy

    async def is_available(self) -> bool:
        self.probe_count += 1
        return self.available

    async def analyze(
        self, prompts: Sequence[str], date: str, context: ProjectContext | None = None,
    ) -> AnalysisResult:
        self.calls.append(list(prompts))
        self.contexts.append(context)
        if self._responder is not None:
            return self._responder(prompts, date)
        return make_result(total=len(prompts), date=date)


async def no_sleep(_seconds: float) -> None:
    return None


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_prompts() -> list[Prompt]:
    """Ten short chronological prompts."""
    return [make_prompt(f"prompt number {i} about the login form", minute=i) for i in range(10)]


@pytest.fixture
def sample_result() -> AnalysisResult:
    return make_result(
        total=4,
        score=6.5,
        patterns=[make_pattern("vague", frequency=2, severity="high", examples=["fix it"])],
        with_issues=2,
        top_suggestion="Be specific",
    )


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()
