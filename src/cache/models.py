# src/cache/models.py - v2
"""Cache domain models: CacheEntry and CacheMetadata."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from promptaudit.core.models import AnalysisResult


class CacheEntry(BaseModel):
    """One cached batch result, scoped to a model and template version."""

    result: AnalysisResult
    cached_at: datetime
    backend_model_id: str
    prompt_count: int = Field(ge=0)
    template_hash: str


class CacheMetadata(BaseModel):
    """Store-wide metadata persisted next to the entries."""

    template_hash: str
    last_updated: datetime
