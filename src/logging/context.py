# src/logging/context.py - v2
"""Contextual logging support: attach run_id, backend and batch to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per orchestration run.
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_backend: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "backend", default=None
)
_batch: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "batch", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    backend: str | None = None
    batch: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        backend=_backend.get(),
        batch=_batch.get(),
    )


def set_run_context(run_id: str, backend: str | None = None) -> None:
    """Set run-level context (called once per orchestration run)."""
    _run_id.set(run_id)
    _backend.set(backend)


def set_backend_context(backend: str) -> None:
    """Record the backend chosen for the current run."""
    _backend.set(backend)


def set_batch_context(index: int, total: int) -> None:
    """Set batch-level context, rendered as "index/total" (1-based)."""
    _batch.set(f"{index}/{total}")


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _backend.set(None)
    _batch.set(None)
