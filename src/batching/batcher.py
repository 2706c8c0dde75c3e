# src/batching/batcher.py - v1
"""Greedy, order-preserving packing of prompts into token-bounded batches.

Policies:
  chronological: keep the input order (already sorted by timestamp).
  priority: sort once by estimated size, longest first. The sort is stable,
    so prompts of equal size keep their chronological order.

A prompt whose own estimate exceeds the budget still forms a one-element
batch. It is never dropped and never split; a backend rejecting it is handled
by the orchestrator's per-batch failure policy.
"""

from __future__ import annotations

import logging
from typing import Literal, Sequence

from promptaudit.batching.token_estimator import estimate_tokens
from promptaudit.core.models import Batch, Prompt

logger = logging.getLogger(__name__)

PackingPolicy = Literal["chronological", "priority"]


def order_prompts(prompts: Sequence[Prompt], policy: PackingPolicy) -> list[Prompt]:
    """Return prompts in the order the packer will consume them."""
    if policy == "chronological":
        return list(prompts)
    if policy == "priority":
        return sorted(prompts, key=lambda p: estimate_tokens(p.text), reverse=True)
    raise ValueError(f"Unknown packing policy: {policy!r}")


def pack(
    prompts: Sequence[Prompt],
    max_tokens_per_batch: int,
    policy: PackingPolicy = "chronological",
    max_prompts_per_batch: int | None = None,
) -> list[Batch]:
    """Partition prompts into batches bounded by a token budget.

    Args:
        prompts: Ordered prompt sequence.
        max_tokens_per_batch: Token budget per batch (estimated).
        policy: Packing policy (chronological or priority).
        max_prompts_per_batch: Optional cap on prompts per batch.

    Returns:
        Ordered list of batches. Concatenating their prompts reproduces the
        policy-ordered input exactly.

    Raises:
        ValueError: If the budget or prompt cap is not positive.
    """
    if max_tokens_per_batch <= 0:
        raise ValueError("max_tokens_per_batch must be > 0")
    if max_prompts_per_batch is not None and max_prompts_per_batch <= 0:
        raise ValueError("max_prompts_per_batch must be > 0 when set")

    batches: list[Batch] = []
    current: list[Prompt] = []
    current_tokens = 0

    for prompt in order_prompts(prompts, policy):
        tokens = estimate_tokens(prompt.text)
        fits_budget = current_tokens + tokens <= max_tokens_per_batch
        fits_count = max_prompts_per_batch is None or len(current) < max_prompts_per_batch

        if current and not (fits_budget and fits_count):
            batches.append(Batch(prompts=tuple(current), estimated_tokens=current_tokens))
            current, current_tokens = [], 0

        if not current and tokens > max_tokens_per_batch:
            logger.debug(
                "Prompt from %s exceeds batch budget (%d > %d tokens), packing alone",
                prompt.source_id or "unknown source", tokens, max_tokens_per_batch,
            )

        current.append(prompt)
        current_tokens += tokens

    if current:
        batches.append(Batch(prompts=tuple(current), estimated_tokens=current_tokens))

    logger.debug(
        "Packed %d prompt(s) into %d batch(es) (budget=%d, policy=%s)",
        len(prompts), len(batches), max_tokens_per_batch, policy,
    )
    return batches
