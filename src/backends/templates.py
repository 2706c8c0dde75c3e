# src/backends/templates.py - v2
"""Instruction templates, issue taxonomy and user-prompt construction.

Every backend sends one of the fixed instruction templates below. Their
combined digest (INSTRUCTION_TEMPLATE_HASH) is persisted next to the result
cache; editing any template invalidates all cached results.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Sequence

from promptaudit.core.models import ProjectContext, Severity


@dataclass(frozen=True)
class IssueMetadata:
    """Static description of a known issue id."""

    name: str
    severity: Severity
    suggestion: str
    example_before: str | None = None
    example_after: str | None = None


ISSUE_TAXONOMY: dict[str, IssueMetadata] = {
    "vague": IssueMetadata(
        name="Vague Request",
        severity="high",
        suggestion="Be specific about what you need: name functions, files, errors or behaviours.",
        example_before="Help me with my code",
        example_after="Help me debug calculateTotal() in utils.ts, it returns undefined for an empty array",
    ),
    "no-context": IssueMetadata(
        name="Missing Context",
        severity="high",
        suggestion="Give background: file paths, function names, error messages or code snippets.",
        example_before="Fix the bug",
        example_after="Fix the bug in src/auth/login.ts that logs users out after 5 minutes",
    ),
    "too-broad": IssueMetadata(
        name="Too Broad",
        severity="medium",
        suggestion="Split the request into focused tasks, or order related tasks explicitly.",
        example_before="Build me an app with authentication, database, and API",
        example_after="Create a React login form with email/password authentication using JWT",
    ),
    "no-goal": IssueMetadata(
        name="No Clear Goal",
        severity="high",
        suggestion="State the outcome you want and how success will be judged.",
        example_before="Look at this file",
        example_after="Review src/auth/login.ts for input validation and SQL injection risks",
    ),
    "imperative": IssueMetadata(
        name="Command Without Context",
        severity="low",
        suggestion="Explain the use case behind the command.",
        example_before="Add a button",
        example_after="Add a Submit button to the login form that validates input before calling the API",
    ),
    "missing-technical-details": IssueMetadata(
        name="Missing Technical Details",
        severity="medium",
        suggestion="Include signatures, stack traces, error text or relevant code.",
        example_before="The function crashes sometimes",
        example_after="validateUser() in src/utils/auth.ts throws 'Cannot read property email of null' on undefined input",
    ),
    "unclear-priorities": IssueMetadata(
        name="Unclear Priorities",
        severity="low",
        suggestion="Order multiple requests by priority or send them separately.",
        example_before="Add error handling and logging and also optimize performance and add tests",
        example_after="First add error handling to the upload handler, then add request logging",
    ),
    "insufficient-constraints": IssueMetadata(
        name="Insufficient Constraints",
        severity="low",
        suggestion="Specify requirements: edge cases, performance targets, compatibility.",
        example_before="Make it faster",
        example_after="Bring the search query under 100ms without changing the public API",
    ),
}

_ISSUE_IDS = ", ".join(ISSUE_TAXONOMY)

SYSTEM_PROMPT_MINIMAL = f"""You analyze prompts written for AI coding assistants and report quality issues.
Respond with JSON only: {{"issues": ["issue-id", ...], "score": 0-100}}

Valid issue ids: {_ISSUE_IDS}
List an issue id once for every prompt that exhibits it.

Scoring: 0-100 (90+ excellent, 70-89 good, 50-69 fair, below 50 poor).

Example:
Input: "Help me with code"
Output: {{"issues": ["vague", "no-context"], "score": 35}}"""

SYSTEM_PROMPT_FULL = """You are an expert reviewer of prompts written for AI coding assistants.
Identify the patterns that make the prompts less effective and suggest concrete improvements.

Return ONLY valid JSON (no markdown, no code fences) with this schema:
{
  "patterns": [
    {
      "id": "kebab-case-id",
      "name": "Human-Readable Issue Name",
      "frequency": 3,
      "severity": "high|medium|low",
      "examples": ["problematic prompt 1", "problematic prompt 2"],
      "suggestion": "Actionable advice",
      "beforeAfter": {"before": "original prompt", "after": "improved prompt"}
    }
  ],
  "stats": {"totalPrompts": 10, "promptsWithIssues": 7, "overallScore": 65},
  "topSuggestion": "Single most impactful recommendation"
}

Rules:
- frequency counts how many of the analyzed prompts exhibit the pattern.
- Use 1-3 real examples taken from the analyzed prompts.
- severity: high for vague requests, missing context or no goal; medium for
  overly broad scope or missing technical details; low for minor gaps.
- overallScore is 0-100 (90+ excellent, 75-89 good, 60-74 fair, below 60 poor).
- Prefer these ids when they apply: """ + _ISSUE_IDS + "."

INSTRUCTION_TEMPLATES: tuple[str, ...] = (SYSTEM_PROMPT_FULL, SYSTEM_PROMPT_MINIMAL)

_TEMPLATE_SEPARATOR = "\n\x1e\n"


def hash_templates(templates: Sequence[str] = INSTRUCTION_TEMPLATES) -> str:
    """SHA-256 over every instruction template, in a fixed order."""
    joined = _TEMPLATE_SEPARATOR.join(templates)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


INSTRUCTION_TEMPLATE_HASH = hash_templates()


def format_project_context(context: ProjectContext | None) -> str:
    """Render the project context block, or "" when there is nothing to say."""
    if context is None:
        return ""

    parts: list[str] = []
    if context.role:
        parts.append(f"Role: {context.role}")
    if context.project_type:
        parts.append(f"Project Type: {context.project_type}")
    if context.domain:
        parts.append(f"Domain: {context.domain}")
    if context.tech_stack:
        parts.append(f"Tech Stack: {', '.join(context.tech_stack)}")
    if context.guidelines:
        parts.append("Guidelines:\n" + "\n".join(f"- {g}" for g in context.guidelines))
    if not parts:
        return ""
    return "\n\nProject Context:\n" + "\n".join(parts) + "\n"


def build_user_prompt(
    prompts: Sequence[str], date: str, context: ProjectContext | None = None,
) -> str:
    """Format prompts as a numbered list with the analysis date.

    A non-empty project context is inserted between the heading and the
    prompt list.

    Raises:
        ValueError: If `prompts` is empty.
    """
    if not prompts:
        raise ValueError("Cannot build a user prompt from an empty prompt list")

    numbered = "\n\n".join(f"{i}. {text}" for i, text in enumerate(prompts, start=1))
    plural = "" if len(prompts) == 1 else "s"
    return (
        f"Analyze the following {len(prompts)} prompt{plural} from {date}:"
        f"{format_project_context(context)}\n\n"
        f"{numbered}\n\n"
        "Respond with a JSON object following the specified schema."
    )
