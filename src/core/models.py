# src/core/models.py - v2
"""Shared Pydantic domain models used across modules.

No module redefines these types: prompts, batches and analysis results are
always imported from core.models.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["low", "medium", "high"]

SEVERITY_RANK: dict[str, int] = {"low": 1, "medium": 2, "high": 3}

DEFAULT_TOP_SUGGESTION = "Your prompts look good!"


# === INPUT MODELS ===


class Prompt(BaseModel):
    """A single already-sanitized prompt extracted from a session log."""

    model_config = ConfigDict(frozen=True)

    text: str
    timestamp: datetime
    source_id: str = ""


class Batch(BaseModel):
    """Ordered group of prompts sent together in one backend call."""

    model_config = ConfigDict(frozen=True)

    prompts: tuple[Prompt, ...]
    estimated_tokens: int

    @property
    def texts(self) -> list[str]:
        """Prompt texts in batch order."""
        return [p.text for p in self.prompts]

    def __len__(self) -> int:
        return len(self.prompts)


class ProjectContext(BaseModel):
    """Optional description of the user's project, shown to the backend.

    Prompts that look vague in isolation are often fine for a known stack
    or domain. Results analysed with a context are cached separately.
    """

    model_config = ConfigDict(frozen=True)

    role: str = ""
    project_type: str = ""
    domain: str = ""
    tech_stack: tuple[str, ...] = ()
    guidelines: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not any((self.role, self.project_type, self.domain, self.tech_stack, self.guidelines))

    def digest(self) -> str:
        """Short stable hash of the context, used to scope cache entries."""
        return hashlib.sha256(self.model_dump_json().encode("utf-8")).hexdigest()[:16]


# === ANALYSIS MODELS ===


class BeforeAfter(BaseModel):
    """Example rewrite of a problematic prompt."""

    before: str
    after: str


class Pattern(BaseModel):
    """A named prompt-quality pattern detected by a backend."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    frequency: int = Field(ge=0)
    severity: Severity
    examples: list[str] = Field(default_factory=list)
    suggestion: str
    before_after: BeforeAfter = Field(alias="beforeAfter")


class AnalysisStats(BaseModel):
    """Summary statistics of one analysis (batch or merged report)."""

    model_config = ConfigDict(populate_by_name=True)

    total_prompts: int = Field(alias="totalPrompts", ge=0)
    prompts_with_issues: int = Field(alias="promptsWithIssues", ge=0)
    overall_score: float = Field(alias="overallScore", ge=0.0, le=10.0)


class AnalysisResult(BaseModel):
    """Structured output of a backend call, a cache hit or a merge."""

    model_config = ConfigDict(populate_by_name=True)

    date: str
    patterns: list[Pattern] = Field(default_factory=list)
    stats: AnalysisStats
    top_suggestion: str = Field(alias="topSuggestion")
