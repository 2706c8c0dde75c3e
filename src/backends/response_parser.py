# src/backends/response_parser.py - v1
"""Turn raw backend text into a validated AnalysisResult.

Backends answer in one of three JSON shapes, tried in this order:
  minimal: {"issues": ["issue-id", ...], "score": 0-100}
  simple:  {"issues": [{"name", "example", "fix"}], "score": 0-100, "tip": str}
  full:    {"patterns": [...], "stats": {...}, "topSuggestion": str}

All shapes report scores on 0-100; results are normalised to 0-10.
total_prompts is always the real batch size, never the backend's claim.
"""

from __future__ import annotations

import json
import logging
import re
from collections import Counter

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from promptaudit.backends.errors import ResponseValidationError
from promptaudit.backends.templates import ISSUE_TAXONOMY, IssueMetadata
from promptaudit.core.models import (
    DEFAULT_TOP_SUGGESTION,
    AnalysisResult,
    AnalysisStats,
    BeforeAfter,
    Pattern,
)

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*$")

DEFAULT_SCORE = 50.0
MAX_MINIMAL_PATTERNS = 5


# === PAYLOAD SCHEMAS ===


class MinimalPayload(BaseModel):
    issues: list[str]
    score: float = DEFAULT_SCORE


class SimpleIssue(BaseModel):
    name: str
    example: str = ""
    fix: str = ""


class SimplePayload(BaseModel):
    issues: list[SimpleIssue]
    score: float = DEFAULT_SCORE
    tip: str = ""


class FullStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompts_with_issues: int = Field(default=0, alias="promptsWithIssues", ge=0)
    overall_score: float = Field(default=DEFAULT_SCORE, alias="overallScore")


class FullPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    patterns: list[Pattern]
    stats: FullStats
    top_suggestion: str = Field(default="", alias="topSuggestion")


# === TEXT CLEANUP ===


def strip_code_fences(text: str) -> str:
    """Return the body of the first markdown code block, or the trimmed text."""
    match = _CODE_FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def repair_truncated_json(text: str) -> str:
    """Close an unterminated string and any open arrays/objects.

    Brackets are closed arrays first, then objects, which covers the usual
    truncation point inside a pattern list.
    """
    fixed = text.strip()
    open_braces = 0
    open_brackets = 0
    in_string = False
    escape_next = False

    for char in fixed:
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            open_braces += 1
        elif char == "}":
            open_braces -= 1
        elif char == "[":
            open_brackets += 1
        elif char == "]":
            open_brackets -= 1

    if in_string:
        fixed += '"'
    fixed = _TRAILING_COMMA_RE.sub("", fixed)
    fixed += "]" * max(open_brackets, 0)
    fixed += "}" * max(open_braces, 0)
    return fixed


def load_json_payload(text: str) -> object:
    """Decode backend text as JSON, repairing truncation once.

    Raises:
        ResponseValidationError: If the text is not JSON even after repair.
    """
    body = strip_code_fences(text)
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        pass

    try:
        return json.loads(repair_truncated_json(body))
    except json.JSONDecodeError as e:
        raise ResponseValidationError(f"Failed to parse response as JSON: {e}") from e


# === NORMALISATION ===


def normalize_score(score: float) -> float:
    """Map a 0-100 score onto 0-10 (clamped, one decimal)."""
    return round(min(max(score / 10.0, 0.0), 10.0), 1)


def lookup_issue(issue_id: str) -> IssueMetadata:
    """Taxonomy entry for an id, or a generic medium-severity entry."""
    known = ISSUE_TAXONOMY.get(issue_id)
    if known is not None:
        return known
    return IssueMetadata(
        name=issue_id.replace("-", " ").replace("_", " ").title(),
        severity="medium",
        suggestion="Review this pattern",
    )


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _from_minimal(payload: MinimalPayload, date: str, prompt_count: int) -> AnalysisResult:
    counts = Counter(payload.issues)
    patterns: list[Pattern] = []
    for issue_id, count in counts.most_common(MAX_MINIMAL_PATTERNS):
        meta = lookup_issue(issue_id)
        patterns.append(
            Pattern(
                id=issue_id,
                name=meta.name,
                frequency=min(count, prompt_count),
                severity=meta.severity,
                examples=[meta.example_before] if meta.example_before else [],
                suggestion=meta.suggestion,
                before_after=BeforeAfter(
                    before=meta.example_before or "Example not available",
                    after=meta.example_after or meta.suggestion,
                ),
            )
        )

    return AnalysisResult(
        date=date,
        patterns=patterns,
        stats=AnalysisStats(
            total_prompts=prompt_count,
            prompts_with_issues=min(len(payload.issues), prompt_count),
            overall_score=normalize_score(payload.score),
        ),
        top_suggestion=patterns[0].suggestion if patterns else DEFAULT_TOP_SUGGESTION,
    )


def _from_simple(payload: SimplePayload, date: str, prompt_count: int) -> AnalysisResult:
    patterns: list[Pattern] = []
    for index, issue in enumerate(payload.issues):
        issue_id = _slugify(issue.name) or f"issue-{index}"
        meta = ISSUE_TAXONOMY.get(issue_id)
        patterns.append(
            Pattern(
                id=issue_id,
                name=issue.name,
                frequency=1,
                severity=meta.severity if meta else "medium",
                examples=[issue.example] if issue.example else [],
                suggestion=issue.fix,
                before_after=BeforeAfter(before=issue.example, after=issue.fix),
            )
        )

    return AnalysisResult(
        date=date,
        patterns=patterns,
        stats=AnalysisStats(
            total_prompts=prompt_count,
            prompts_with_issues=min(len(payload.issues), prompt_count),
            overall_score=normalize_score(payload.score),
        ),
        top_suggestion=payload.tip or (patterns[0].suggestion if patterns else DEFAULT_TOP_SUGGESTION),
    )


def _from_full(payload: FullPayload, date: str, prompt_count: int) -> AnalysisResult:
    patterns = [
        p.model_copy(update={"frequency": min(p.frequency, prompt_count)})
        for p in payload.patterns
    ]
    return AnalysisResult(
        date=date,
        patterns=patterns,
        stats=AnalysisStats(
            total_prompts=prompt_count,
            prompts_with_issues=min(payload.stats.prompts_with_issues, prompt_count),
            overall_score=normalize_score(payload.stats.overall_score),
        ),
        top_suggestion=payload.top_suggestion or DEFAULT_TOP_SUGGESTION,
    )


def parse_analysis_payload(text: str, date: str, prompt_count: int) -> AnalysisResult:
    """Parse raw backend output for a batch of `prompt_count` prompts.

    Raises:
        ResponseValidationError: If the text matches none of the schemas.
    """
    data = load_json_payload(text)
    if not isinstance(data, dict):
        raise ResponseValidationError(
            f"Response is not a JSON object (got {type(data).__name__})"
        )

    try:
        return _from_minimal(MinimalPayload.model_validate(data), date, prompt_count)
    except ValidationError:
        pass
    try:
        return _from_simple(SimplePayload.model_validate(data), date, prompt_count)
    except ValidationError:
        pass
    try:
        return _from_full(FullPayload.model_validate(data), date, prompt_count)
    except ValidationError as e:
        logger.debug("Response rejected by every schema: %s", e)
        raise ResponseValidationError(
            f"Response does not match expected schema ({e.error_count()} error(s))"
        ) from e
