# src/backends/errors.py - v1
"""Error taxonomy for backend selection and backend calls.

Two families never overlap:
  AllBackendsUnavailableError: nothing configured is reachable (run-level).
  BackendError: the reachable backend failed a request. Subclasses tell
    retryable (TransientBackendError) from non-retryable (FatalBackendError)
    failures, and RetryExhaustedError marks a transient failure that
    outlived its retry budget.
"""

from __future__ import annotations

from typing import Sequence


class PipelineError(Exception):
    """Base class for run-level orchestration failures."""


class AllBackendsUnavailableError(PipelineError):
    """Every candidate backend failed its availability probe."""

    def __init__(self, tried: Sequence[str], message: str | None = None):
        self.tried = list(tried)
        super().__init__(
            message
            or (
                "No analysis backend is available "
                f"(tried: {', '.join(self.tried) or 'none'}). "
                "Check backend configuration and connectivity."
            )
        )


class UnknownBackendError(ValueError):
    """Requested backend identity is not registered."""


class BackendError(Exception):
    """A request against a selected backend failed."""

    def __init__(self, message: str, backend: str = "unknown", status_code: int | None = None):
        self.backend = backend
        self.status_code = status_code
        super().__init__(message)


class TransientBackendError(BackendError):
    """Retryable failure: timeout, connection reset, 5xx or rate limit."""


class FatalBackendError(BackendError):
    """Non-retryable failure: malformed request or unusable response."""


class BackendAuthenticationError(FatalBackendError):
    """Credentials were rejected (401/403). Every batch would fail the same way."""


class ResponseValidationError(FatalBackendError):
    """Backend payload did not match any accepted result schema."""


class RetryExhaustedError(BackendError):
    """Transient failures persisted through every allowed attempt."""

    def __init__(self, attempts: int, last_error: BaseException, backend: str = "unknown"):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Gave up after {attempts} attempt(s): {last_error}",
            backend=backend,
            status_code=getattr(last_error, "status_code", None),
        )


def error_from_status(status_code: int, message: str, backend: str = "unknown") -> BackendError:
    """Map an HTTP-like status code to the matching backend error kind."""
    if status_code == 429 or status_code >= 500:
        return TransientBackendError(message, backend=backend, status_code=status_code)
    if status_code in (401, 403):
        return BackendAuthenticationError(message, backend=backend, status_code=status_code)
    return FatalBackendError(message, backend=backend, status_code=status_code)
