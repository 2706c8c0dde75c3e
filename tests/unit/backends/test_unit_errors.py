# tests/unit/backends/test_unit_errors.py - v1
"""Tests for backends/errors.py - taxonomy and status mapping."""

from __future__ import annotations

import pytest

from promptaudit.backends.errors import (
    AllBackendsUnavailableError,
    BackendAuthenticationError,
    BackendError,
    FatalBackendError,
    PipelineError,
    RetryExhaustedError,
    TransientBackendError,
    error_from_status,
)


class TestErrorFromStatus:
    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_transient(self, status):
        err = error_from_status(status, "msg", backend="anthropic")
        assert isinstance(err, TransientBackendError)
        assert err.status_code == status
        assert err.backend == "anthropic"

    @pytest.mark.parametrize("status", [401, 403])
    def test_authentication(self, status):
        assert isinstance(error_from_status(status, "msg"), BackendAuthenticationError)

    @pytest.mark.parametrize("status", [400, 404, 422])
    def test_fatal(self, status):
        err = error_from_status(status, "msg")
        assert isinstance(err, FatalBackendError)
        assert not isinstance(err, BackendAuthenticationError)


class TestFamilies:
    def test_unavailable_is_not_backend_error(self):
        err = AllBackendsUnavailableError(["ollama", "google"])
        assert isinstance(err, PipelineError)
        assert not isinstance(err, BackendError)
        assert "ollama, google" in str(err)
        assert err.tried == ["ollama", "google"]

    def test_exhausted_message(self):
        err = RetryExhaustedError(3, TimeoutError("slow"), backend="google")
        assert "Gave up after 3 attempt(s)" in str(err)
        assert err.backend == "google"
