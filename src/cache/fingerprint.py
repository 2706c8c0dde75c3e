# src/cache/fingerprint.py - v4
"""Content-addressed cache keys for analysed batches.

The key covers the model id and the exact, ordered prompt texts. Reordering
prompts or switching models yields a different key. Every prompt is
length-prefixed before joining, so no prompt content can imitate a boundary
between two prompts.
"""

from __future__ import annotations

import hashlib
from typing import Sequence

SEPARATOR = "\x1e"


def hash_text(text: str) -> str:
    """SHA-256 hex digest of UTF-8 text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def encode_prompts(prompts: Sequence[str]) -> str:
    """Injective encoding of an ordered prompt list: `<len>:<text>` per item."""
    return SEPARATOR.join(f"{len(p)}:{p}" for p in prompts)


def generate_cache_key(prompts: Sequence[str], model_id: str) -> str:
    """Deterministic key for a batch of prompts analysed by `model_id`.

    Args:
        prompts: Ordered prompt texts of the batch.
        model_id: Cache scope, e.g. "ollama:llama3.2" (plus a context digest
            when a project context is in use).

    Returns:
        Lowercase hex SHA-256 digest.
    """
    return hash_text(f"{len(model_id)}:{model_id}{SEPARATOR}{encode_prompts(prompts)}")
