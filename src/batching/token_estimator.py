# src/batching/token_estimator.py - v1
"""Cheap token estimation used for batch packing.

The estimate is a length heuristic, not a tokenizer count: 1 token is
roughly 4 characters for English prose and code across common tokenizers.
"""

from __future__ import annotations

import math
from typing import Iterable

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a text (0 for empty text)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_total(texts: Iterable[str]) -> int:
    """Sum of per-text estimates."""
    return sum(estimate_tokens(t) for t in texts)
