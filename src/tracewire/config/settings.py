"""Tracer configuration settings.

This module provides the TracerSettings class and settings singleton.
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from tracewire.config.env_loader import Environment, get_environment, load_env_files
from tracewire.config.validators import (
    REPORTER_KINDS,
    SCOPE_KINDS,
    resolve_path,
    validate_choice,
    validate_log_format,
    validate_log_level,
)

log = structlog.get_logger(__name__)


class TracerSettings(BaseSettings):
    """Unified tracer configuration.

    Loads configuration from environment variables, .env files and defaults.
    Validates all values using Pydantic.
    """

    model_config = SettingsConfigDict(
        # .env files are loaded manually via env_loader to support
        # environment-specific files with priority order
        env_prefix="TRACEWIRE_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    environment: Environment = Field(
        default_factory=get_environment, description="Current environment"
    )
    service_name: str = Field(default="unknown-service", description="Name of the traced service")

    # Telemetry
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(default="console", description="Log format (json or console)")
    log_dir: Path | None = Field(
        default=None, description="Directory for JSON-lines log files (None disables file output)"
    )

    # Sampling
    sample_by_default: bool = Field(
        default=True, description="Decision returned by the default constant sampler"
    )

    # Collaborators
    reporter: str = Field(
        default="logging", description="Reporter for finished spans (logging, memory, null)"
    )
    scope: str = Field(
        default="explicit",
        description="Ambient propagation strategy (explicit, contextvar, thread)",
    )

    # Span resource limits
    max_log_events: int = Field(
        default=1000,
        ge=1,
        description="Log events per span kept with payload; later events keep name and timestamp only",
    )
    max_payload_chars: int = Field(
        default=4096, ge=0, description="Truncation length for str/bytes log payloads"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        return validate_log_level(v)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        return validate_log_format(v)

    @field_validator("log_dir", mode="before")
    @classmethod
    def resolve_log_dir(cls, v: Path | str | None) -> Path | None:
        """Resolve relative paths to absolute."""
        return resolve_path(v)

    @field_validator("reporter")
    @classmethod
    def validate_reporter(cls, v: str) -> str:
        """Validate reporter kind."""
        return validate_choice(v, REPORTER_KINDS, "reporter")

    @field_validator("scope")
    @classmethod
    def validate_scope(cls, v: str) -> str:
        """Validate scope manager kind."""
        return validate_choice(v, SCOPE_KINDS, "scope")


_settings: TracerSettings | None = None


def load_settings(project_root: Path | None = None) -> TracerSettings:
    """Load and validate tracer configuration.

    This function:
    1. Loads .env files in priority order (via env_loader)
    2. Creates a TracerSettings instance (reads from environment variables)
    3. Validates all values using Pydantic

    Args:
        project_root: Directory to look for .env files in (default: cwd).

    Returns:
        Validated TracerSettings instance.

    Raises:
        ValidationError: If configuration validation fails.
    """
    loaded_files = load_env_files(project_root)
    if loaded_files:
        log.info("env_files_loaded", files=loaded_files)

    try:
        config = TracerSettings()
    except Exception as e:
        log.error("settings_load_failed", error=str(e), error_type=type(e).__name__)
        raise

    log.debug(
        "settings_loaded",
        environment=config.environment.value,
        service_name=config.service_name,
        reporter=config.reporter,
        scope=config.scope,
    )
    return config


def get_settings() -> TracerSettings:
    """Get the settings singleton.

    Returns:
        TracerSettings instance (singleton pattern).
    """
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() reloads them."""
    global _settings
    _settings = None
