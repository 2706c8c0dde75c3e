# src/config/settings.py - v3
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for backend credentials, batching overrides, cache
location, retry budget, project context and logging. Comma-separated list settings are parsed
by the `*_list` properties.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from promptaudit.core.models import ProjectContext

KNOWN_SERVICES = ("ollama", "anthropic", "google")
_SEVERITIES = ("low", "medium", "high")


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === BACKENDS ===
    # Preference order; the first reachable one is used.
    services: str = "ollama,anthropic,google"

    ollama_model: str = "llama3.2"
    ollama_host: str = "http://localhost:11434"

    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-haiku-latest"

    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash"

    # Requests per minute; 0 disables pacing.
    ollama_rpm: int = 0
    anthropic_rpm: int = 50
    google_rpm: int = 50

    # === Batching (0 = backend default) ===
    batch_token_budget: int = 0
    max_prompts_per_batch: int = 0
    split_failed_batches: bool = True

    # === Cache ===
    cache_root: Path = Path("~/.promptaudit/cache/analysis")
    cache_ttl_hours: int = 168
    bypass_cache: bool = False

    # === Retry and timeouts ===
    retry_max_attempts: int = 3
    retry_base_delay_s: float = 1.0
    retry_max_delay_s: float = 30.0
    probe_timeout_s: float = 5.0
    request_timeout_s: float = 60.0

    # === Pattern rules ===
    disabled_patterns: str = ""
    severity_overrides: str = ""

    # === Project context (all optional) ===
    context_role: str = ""
    context_project_type: str = ""
    context_domain: str = ""
    context_tech_stack: str = ""
    # Guidelines are separated by ";" since they may contain commas.
    context_guidelines: str = ""

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        services = self.services_list
        if not services:
            errors.append("SERVICES must name at least one backend")
        unknown = [s for s in services if s not in KNOWN_SERVICES]
        if unknown:
            errors.append(
                f"Unknown service(s) in SERVICES: {', '.join(unknown)} "
                f"(available: {', '.join(KNOWN_SERVICES)})"
            )

        if self.retry_max_attempts < 1:
            errors.append("RETRY_MAX_ATTEMPTS must be >= 1")
        if self.cache_ttl_hours < 0:
            errors.append("CACHE_TTL_HOURS must be >= 0")
        if self.batch_token_budget < 0 or self.max_prompts_per_batch < 0:
            errors.append("Batch overrides must be >= 0 (0 = backend default)")

        for entry in _split(self.severity_overrides):
            pattern_id, sep, severity = entry.partition(":")
            if not sep or not pattern_id.strip() or severity.strip() not in _SEVERITIES:
                errors.append(
                    f"Invalid SEVERITY_OVERRIDES entry {entry!r} (expected id:low|medium|high)"
                )

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def services_list(self) -> list[str]:
        """Parse comma-separated service preference order."""
        return _split(self.services)

    @property
    def disabled_patterns_list(self) -> list[str]:
        """Parse comma-separated disabled pattern ids."""
        return _split(self.disabled_patterns)

    @property
    def severity_overrides_map(self) -> dict[str, str]:
        """Parse `id:severity` pairs."""
        overrides: dict[str, str] = {}
        for entry in _split(self.severity_overrides):
            pattern_id, _, severity = entry.partition(":")
            overrides[pattern_id.strip()] = severity.strip()
        return overrides

    @property
    def rate_limits(self) -> dict[str, int]:
        """Requests-per-minute per backend identity."""
        return {
            "ollama": self.ollama_rpm,
            "anthropic": self.anthropic_rpm,
            "google": self.google_rpm,
        }

    @property
    def project_context(self) -> ProjectContext | None:
        """Project context from the CONTEXT_* settings, or None when unset."""
        context = ProjectContext(
            role=self.context_role.strip(),
            project_type=self.context_project_type.strip(),
            domain=self.context_domain.strip(),
            tech_stack=tuple(_split(self.context_tech_stack)),
            guidelines=tuple(_split(self.context_guidelines, sep=";")),
        )
        return None if context.is_empty else context

    @property
    def resolved_cache_root(self) -> Path:
        return self.cache_root.expanduser()


def _split(value: str, sep: str = ",") -> list[str]:
    return [v.strip() for v in value.split(sep) if v.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
