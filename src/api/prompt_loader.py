# src/api/prompt_loader.py - v1
"""Load already-extracted prompt records from JSON or JSONL files.

Each record is {"text": str, "timestamp": ISO-8601, "source_id": str}.
A file starting with "[" is read as a JSON array, anything else as JSONL.
"""

from __future__ import annotations

import json
import logging
from datetime import date as date_type
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from promptaudit.core.models import Prompt

logger = logging.getLogger(__name__)


class PromptFileError(ValueError):
    """The prompt file cannot be read or contains invalid records."""


def load_prompts(path: Path, day: str | None = None) -> list[Prompt]:
    """Read prompts sorted by timestamp, optionally keeping one UTC day.

    Args:
        path: JSON array or JSONL file.
        day: Keep only prompts whose UTC date is this YYYY-MM-DD.

    Raises:
        PromptFileError: On unreadable files or invalid records.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise PromptFileError(f"Cannot read prompt file {path}: {e}") from e

    try:
        if raw.lstrip().startswith("["):
            records = json.loads(raw)
        else:
            records = [json.loads(line) for line in raw.splitlines() if line.strip()]
    except json.JSONDecodeError as e:
        raise PromptFileError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(records, list):
        raise PromptFileError(f"Expected a list of prompt records in {path}")

    try:
        prompts = [Prompt.model_validate(r) for r in records]
    except ValidationError as e:
        raise PromptFileError(f"Invalid prompt record in {path}: {e}") from e

    if day is not None:
        try:
            wanted = date_type.fromisoformat(day)
        except ValueError as e:
            raise PromptFileError(f"Invalid date {day!r}, expected YYYY-MM-DD") from e
        prompts = [p for p in prompts if _utc_date(p) == wanted]

    prompts.sort(key=_utc_timestamp)
    logger.debug("Loaded %d prompt(s) from %s", len(prompts), path)
    return prompts


def _as_utc(prompt: Prompt) -> datetime:
    ts = prompt.timestamp
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _utc_date(prompt: Prompt) -> date_type:
    return _as_utc(prompt).date()


def _utc_timestamp(prompt: Prompt) -> float:
    return _as_utc(prompt).timestamp()
