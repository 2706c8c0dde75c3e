# src/pipeline/models.py - v1
"""Orchestration outcome models and run-level errors."""

from __future__ import annotations

from typing import Sequence

from pydantic import BaseModel, Field

from promptaudit.backends.errors import PipelineError
from promptaudit.core.models import AnalysisResult


class BatchWarning(BaseModel):
    """A batch (or split half) that was skipped after failing."""

    batch_index: int
    prompt_count: int
    error_type: str
    message: str


class OrchestrationResult(BaseModel):
    """Merged report plus how it was produced."""

    result: AnalysisResult
    backend: str
    batch_count: int = Field(ge=0)
    cached_batches: int = Field(default=0, ge=0)
    analyzed_batches: int = Field(default=0, ge=0)
    skipped_prompts: int = Field(default=0, ge=0)
    warnings: list[BatchWarning] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        """True when some prompts are missing from the report."""
        return bool(self.warnings)


class NoPromptsError(PipelineError):
    """There is nothing to analyse."""

    def __init__(self, message: str = "No prompts to analyze"):
        super().__init__(message)


class AllBatchesFailedError(PipelineError):
    """Every batch failed; no partial report can be produced."""

    def __init__(self, warnings: Sequence[BatchWarning]):
        self.warnings = list(warnings)
        super().__init__(
            f"No batch succeeded ({len(self.warnings)} failure(s)); "
            f"last error: {self.warnings[-1].message if self.warnings else 'unknown'}"
        )
