# tests/unit/backends/test_unit_backend_factory.py - v1
"""Tests for backends/backend_factory.py."""

from __future__ import annotations

import pytest

from promptaudit.backends.adapters.anthropic_backend import AnthropicBackend
from promptaudit.backends.adapters.google_backend import GoogleBackend
from promptaudit.backends.adapters.ollama_backend import OllamaBackend
from promptaudit.backends.backend_factory import (
    create_backend,
    create_backends,
    register_backend,
    registered_backends,
)
from promptaudit.backends.errors import UnknownBackendError
from promptaudit.config.settings import Settings


class TestCreateBackend:
    def test_ollama_from_settings(self):
        s = Settings(_env_file=None, ollama_model="mistral:7b", ollama_host="http://gpu:11434")
        backend = create_backend("ollama", s)
        assert isinstance(backend, OllamaBackend)
        assert backend.model_id == "ollama:mistral:7b"

    def test_anthropic_from_settings(self):
        s = Settings(_env_file=None, anthropic_api_key="sk-test")
        backend = create_backend("anthropic", s)
        assert isinstance(backend, AnthropicBackend)
        assert backend.token_budget_per_batch == 98_000

    def test_kwargs_win(self):
        s = Settings(_env_file=None)
        backend = create_backend("google", s, model="gemini-1.5-pro")
        assert isinstance(backend, GoogleBackend)
        assert backend.model == "gemini-1.5-pro"

    def test_unknown(self):
        with pytest.raises(UnknownBackendError, match="Unsupported backend"):
            create_backend("openai")

    def test_create_backends_in_order(self):
        s = Settings(_env_file=None, services="google,ollama")
        assert [b.identity for b in create_backends(s)] == ["google", "ollama"]

    def test_register_backend(self):
        register_backend("custom", "tests.conftest.FakeBackend")
        try:
            backend = create_backend("custom", identity="custom")
            assert backend.identity == "custom"
            assert "custom" in registered_backends()
        finally:
            from promptaudit.backends import backend_factory

            backend_factory._BACKEND_REGISTRY.pop("custom", None)
