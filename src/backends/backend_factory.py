# src/backends/backend_factory.py - v1
"""Factory: instantiate analysis backends from identity names.

Adapters are registered by class path and imported lazily, so a missing
optional SDK only matters for the backend that needs it.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from promptaudit.backends.base_backend import BaseBackend
from promptaudit.backends.errors import UnknownBackendError
from promptaudit.config.settings import Settings

logger = logging.getLogger(__name__)

# Registry of backend identity → adapter class path (lazy import).
_BACKEND_REGISTRY: dict[str, str] = {
    "ollama": "promptaudit.backends.adapters.ollama_backend.OllamaBackend",
    "anthropic": "promptaudit.backends.adapters.anthropic_backend.AnthropicBackend",
    "google": "promptaudit.backends.adapters.google_backend.GoogleBackend",
}


def create_backend(
    identity: str,
    settings: Settings | None = None,
    **kwargs: Any,
) -> BaseBackend:
    """Instantiate the adapter registered under `identity`.

    Args:
        identity: Backend identifier (ollama, anthropic, google).
        settings: Application settings (models, hosts, API keys).
        **kwargs: Adapter-specific arguments; these win over settings.

    Raises:
        UnknownBackendError: If the identity is not registered.
    """
    if identity not in _BACKEND_REGISTRY:
        raise UnknownBackendError(
            f"Unsupported backend: {identity!r}. "
            f"Available: {', '.join(sorted(_BACKEND_REGISTRY))}"
        )

    backend_cls = _import_class(_BACKEND_REGISTRY[identity])

    init_kwargs = dict(kwargs)
    if settings is not None:
        if identity == "ollama":
            init_kwargs.setdefault("model", settings.ollama_model)
            init_kwargs.setdefault("host", settings.ollama_host)
        elif identity == "anthropic":
            init_kwargs.setdefault("model", settings.anthropic_model)
            init_kwargs.setdefault("api_key", settings.anthropic_api_key)
        elif identity == "google":
            init_kwargs.setdefault("model", settings.google_model)
            init_kwargs.setdefault("api_key", settings.google_api_key)

    logger.debug("Creating backend: identity=%s, model=%s", identity, init_kwargs.get("model"))
    return backend_cls(**init_kwargs)


def create_backends(settings: Settings, services: list[str] | None = None) -> list[BaseBackend]:
    """Build every configured backend, in preference order."""
    return [create_backend(name, settings) for name in (services or settings.services_list)]


def register_backend(name: str, class_path: str) -> None:
    """Register a custom backend adapter.

    Args:
        name: Backend identity.
        class_path: Fully qualified class path implementing BaseBackend.
    """
    _BACKEND_REGISTRY[name] = class_path
    logger.info("Registered backend: %s -> %s", name, class_path)


def registered_backends() -> list[str]:
    return sorted(_BACKEND_REGISTRY)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
