# src/pipeline/aggregator.py - v1
"""Merge per-batch AnalysisResults into one report for a date.

Patterns are merged by id. A pattern's frequency in a batch is the number
of that batch's prompts exhibiting it, so summing frequencies gives the
batch-size-weighted prevalence over the whole day.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from promptaudit.core.models import (
    DEFAULT_TOP_SUGGESTION,
    SEVERITY_RANK,
    AnalysisResult,
    AnalysisStats,
    Pattern,
    Severity,
)

logger = logging.getLogger(__name__)

MAX_PATTERNS = 5
MAX_EXAMPLES = 3


@dataclass
class PatternRules:
    """User rules applied to merged patterns before ranking."""

    disabled: set[str] = field(default_factory=set)
    severity_overrides: dict[str, Severity] = field(default_factory=dict)

    def apply(self, patterns: list[Pattern]) -> list[Pattern]:
        seen = {p.id for p in patterns}
        for pattern_id in (self.disabled | set(self.severity_overrides)) - seen:
            logger.warning("Pattern rule for %r matched nothing in this report", pattern_id)

        kept: list[Pattern] = []
        for pattern in patterns:
            if pattern.id in self.disabled:
                continue
            override = self.severity_overrides.get(pattern.id)
            if override is not None and override != pattern.severity:
                pattern = pattern.model_copy(update={"severity": override})
            kept.append(pattern)
        return kept


class ResultAggregator:
    """Deterministic merge of batch results.

    Args:
        max_patterns: Number of ranked patterns kept in the report.
        max_examples: Examples kept per pattern.
        rules: Optional pattern rules (disable ids, override severities).
    """

    def __init__(
        self,
        max_patterns: int = MAX_PATTERNS,
        max_examples: int = MAX_EXAMPLES,
        rules: PatternRules | None = None,
    ) -> None:
        self._max_patterns = max_patterns
        self._max_examples = max_examples
        self._rules = rules or PatternRules()

    def merge(self, batch_results: Sequence[AnalysisResult], date: str) -> AnalysisResult:
        """Merge batch results (in batch order) into one report.

        Raises:
            ValueError: If `batch_results` is empty.
        """
        if not batch_results:
            raise ValueError("Cannot merge an empty list of batch results")

        patterns = self._rules.apply(self._merge_patterns(batch_results))
        patterns.sort(key=lambda p: (-SEVERITY_RANK[p.severity], -p.frequency, p.id))
        patterns = patterns[: self._max_patterns]

        stats = self._merge_stats(batch_results)

        if patterns:
            top_suggestion = patterns[0].suggestion
        else:
            top_suggestion = next(
                (r.top_suggestion for r in batch_results if r.top_suggestion),
                DEFAULT_TOP_SUGGESTION,
            )

        logger.debug(
            "Merged %d batch result(s): %d pattern(s), score %.1f",
            len(batch_results), len(patterns), stats.overall_score,
        )
        return AnalysisResult(
            date=date,
            patterns=patterns,
            stats=stats,
            top_suggestion=top_suggestion,
        )

    def _merge_patterns(self, batch_results: Sequence[AnalysisResult]) -> list[Pattern]:
        merged: dict[str, Pattern] = {}
        for result in batch_results:
            for pattern in result.patterns:
                existing = merged.get(pattern.id)
                if existing is None:
                    merged[pattern.id] = pattern.model_copy(
                        update={"examples": _dedupe(pattern.examples)[: self._max_examples]}
                    )
                    continue

                severity = existing.severity
                if SEVERITY_RANK[pattern.severity] > SEVERITY_RANK[severity]:
                    severity = pattern.severity
                merged[pattern.id] = existing.model_copy(
                    update={
                        "frequency": existing.frequency + pattern.frequency,
                        "severity": severity,
                        "examples": _dedupe(existing.examples + pattern.examples)[: self._max_examples],
                    }
                )
        return list(merged.values())

    @staticmethod
    def _merge_stats(batch_results: Sequence[AnalysisResult]) -> AnalysisStats:
        total = sum(r.stats.total_prompts for r in batch_results)
        with_issues = min(sum(r.stats.prompts_with_issues for r in batch_results), total)

        if total > 0:
            score = sum(r.stats.overall_score * r.stats.total_prompts for r in batch_results) / total
        else:
            score = sum(r.stats.overall_score for r in batch_results) / len(batch_results)

        return AnalysisStats(
            total_prompts=total,
            prompts_with_issues=with_issues,
            overall_score=round(min(max(score, 0.0), 10.0), 1),
        )


def _dedupe(items: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(items))
