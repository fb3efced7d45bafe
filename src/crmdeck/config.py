"""
Configuration models for crmdeck.

Configuration is loaded from crmdeck.toml. Every section is optional:

    [views]
    per_page = 20
    per_page_options = [10, 20, 50]
    default_view = "board"
    drag_activation_distance = 5.0
    unmatched_column = "first"       # or "unassigned"

    [cache]
    ttl = 30.0                       # seconds before a cached page is re-fetched
    max_entries = 64

    [api]
    base_url = "https://crm.example.com/api/v1"
    timeout = 10.0
    token_env = "CRMDECK_API_TOKEN"

    [logging]
    level = "INFO"
    log_dir = ".crmdeck/logs"

Environment overrides: ``CRMDECK_API_URL``, ``CRMDECK_LOG_LEVEL``.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from crmdeck.core.cache import DEFAULT_MAX_ENTRIES
from crmdeck.core.errors import ConfigError
from crmdeck.core.query import DEFAULT_PER_PAGE, PER_PAGE_OPTIONS, ViewMode

CONFIG_FILENAME = "crmdeck.toml"


# =============================================================================
# Sections
# =============================================================================


class ViewsConfig(BaseModel):
    """Defaults applied to every resource view."""

    per_page: int = Field(default=DEFAULT_PER_PAGE, ge=1)
    per_page_options: list[int] = Field(default_factory=lambda: list(PER_PAGE_OPTIONS))
    default_view: ViewMode = ViewMode.TABLE
    drag_activation_distance: float = Field(default=5.0, ge=0)
    unmatched_column: Literal["first", "unassigned"] = "first"

    @field_validator("per_page_options")
    @classmethod
    def _options_positive(cls, value: list[int]) -> list[int]:
        if not value or any(v < 1 for v in value):
            raise ValueError("per_page_options must be a non-empty list of positive integers")
        return sorted(set(value))

    @model_validator(mode="after")
    def _per_page_offered(self) -> ViewsConfig:
        if self.per_page not in self.per_page_options:
            self.per_page_options = sorted({*self.per_page_options, self.per_page})
        return self


class CacheConfig(BaseModel):
    """Shared request cache of a served panel."""

    ttl: float | None = Field(default=30.0, gt=0)
    max_entries: int = Field(default=DEFAULT_MAX_ENTRIES, ge=1)


class ApiConfig(BaseModel):
    """Remote JSON:API backend."""

    base_url: str | None = None
    timeout: float = Field(default=10.0, gt=0)
    token_env: str = "CRMDECK_API_TOKEN"

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    def get_token(self) -> str | None:
        return os.environ.get(self.token_env) or None


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: str = ".crmdeck/logs"

    @field_validator("level")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.upper()


class CrmdeckConfig(BaseModel):
    """Root configuration."""

    views: ViewsConfig = Field(default_factory=ViewsConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================


def load_config(toml_path: Path | None = None, env: dict[str, str] | None = None) -> CrmdeckConfig:
    """
    Load configuration from crmdeck.toml.

    Args:
        toml_path: Path to the TOML file (defaults to ./crmdeck.toml)
        env: Environment mapping used for overrides (defaults to os.environ)

    Returns:
        CrmdeckConfig with values from file or defaults

    Raises:
        ConfigError: If the file exists but cannot be parsed or validated
    """
    toml_path = toml_path or Path.cwd() / CONFIG_FILENAME
    env = dict(os.environ) if env is None else env

    data: dict[str, Any] = {}
    if toml_path.exists():
        try:
            with open(toml_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {toml_path}: {e}") from e

    config_data = {
        section: dict(data[section])
        for section in ("views", "cache", "api", "logging")
        if isinstance(data.get(section), dict)
    }
    _apply_env_overrides(config_data, env)

    try:
        return CrmdeckConfig.model_validate(config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {toml_path}: {e}") from e


def _apply_env_overrides(config_data: dict[str, Any], env: dict[str, str]) -> None:
    if env.get("CRMDECK_API_URL"):
        config_data.setdefault("api", {})["base_url"] = env["CRMDECK_API_URL"]
    if env.get("CRMDECK_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env["CRMDECK_LOG_LEVEL"]
