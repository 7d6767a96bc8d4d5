# src/config/settings.py — v2
"""Typed configuration loaded from environment and .env via pydantic-settings.

Single source of truth for credentials, backend endpoints, storage location,
context-window limits and logging.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is missing or internally inconsistent."""


_KEY_SEPARATORS = re.compile(r"[|,]")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env."""

    model_config = SettingsConfigDict(
        env_prefix="ASKPIPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # === MODEL ROUTING ===
    default_model: str = "gemini-2.5-flash-lite"

    # Cloud credential pool, "|" or "," separated
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("gemini_api_key", "GEMINI_API_KEY", "ASKPIPE_GEMINI_API_KEY"),
    )
    gemini_timeout_s: float = 300.0

    # Local backend
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        validation_alias=AliasChoices("ollama_base_url", "OLLAMA_BASE_URL", "ASKPIPE_OLLAMA_BASE_URL"),
    )
    ollama_timeout_s: float = 600.0

    # === CONVERSATIONS ===
    home_dir: Path = Path("~/.askpipe")
    context_window_limit: int = Field(
        default=8000,
        validation_alias=AliasChoices(
            "context_window_limit", "CONTEXT_WINDOW_LIMIT", "ASKPIPE_CONTEXT_WINDOW_LIMIT",
        ),
    )
    truncation_keep_messages: int = 20

    # === AUDIO ===
    ffmpeg_binary: str = "ffmpeg"
    audio_max_seconds: int = 300

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("context_window_limit", "truncation_keep_messages")
    @classmethod
    def validate_positive(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("gemini_timeout_s", "ollama_timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if not self.default_model.strip():
            errors.append("DEFAULT_MODEL must not be empty")

        backend, sep, model = self.default_model.partition("::")
        if sep and not model.strip():
            errors.append(f"DEFAULT_MODEL {self.default_model!r} has no model after '::'")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def gemini_api_keys(self) -> list[str]:
        """Parse the credential pool into an ordered, de-duplicated list."""
        keys: list[str] = []
        for raw in _KEY_SEPARATORS.split(self.gemini_api_key):
            key = raw.strip()
            if key and key not in keys:
                keys.append(key)
        return keys

    @property
    def home_path(self) -> Path:
        return Path(self.home_dir).expanduser()

    @property
    def conversations_dir(self) -> Path:
        return self.home_path / "conversations"

    @property
    def outputs_dir(self) -> Path:
        return self.home_path / "outputs"

    @property
    def roles_dir(self) -> Path:
        return self.home_path / "roles"

    @property
    def tasks_dir(self) -> Path:
        return self.home_path / "tasks"

    @property
    def recordings_dir(self) -> Path:
        return self.home_path / "recordings"


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment/.env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
