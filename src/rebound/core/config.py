"""Configuration models for rebound.

Defines Pydantic models for loading and validating YAML configuration.
Every section has defaults, so an empty file (or no file) is valid.

Example ``rebound.yaml``::

    retry:
      max_retries: 4
      base_delay: 0.5
    network:
      health_url: https://api.example.com/api/health
    controller:
      default_url: https://app.example.com/chat
    logging:
      level: DEBUG
      format: json
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from rebound.core.constants import (
    BACKOFF_CEILING_SECONDS,
    DEFAULT_BASE_DELAY_SECONDS,
    DEFAULT_CONTEXT_URL,
    DEFAULT_JITTER_FACTOR,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
)
from rebound.core.errors.models import RetryOptions
from rebound.core.exceptions import ConfigError


class RetryConfig(BaseModel):
    """Default retry tuning applied by a RecoveryController."""

    max_retries: int = Field(
        default=DEFAULT_MAX_ATTEMPTS,
        ge=1,
        description="Total attempts per sequence, including the first",
    )
    base_delay: float = Field(
        default=DEFAULT_BASE_DELAY_SECONDS,
        gt=0,
        description="Seconds before the first retry",
    )
    max_delay: float = Field(
        default=BACKOFF_CEILING_SECONDS,
        gt=0,
        description="Ceiling for any computed backoff delay (seconds)",
    )
    jitter_factor: float = Field(
        default=DEFAULT_JITTER_FACTOR,
        ge=0.0,
        le=1.0,
        description="Jitter range as a fraction of the delay (1.0 = full jitter)",
    )

    @model_validator(mode="after")
    def _check_ceiling(self) -> RetryConfig:
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        return self

    def to_options(self) -> RetryOptions:
        """Build the RetryOptions this config describes."""
        return RetryOptions(
            max_attempts=self.max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            jitter_factor=self.jitter_factor,
        )


class NetworkConfig(BaseModel):
    """Connectivity tracking and active probe settings."""

    enabled: bool = Field(
        default=True,
        description="Track online/offline status in the controller",
    )
    health_url: str | None = Field(
        default=None,
        description="URL probed by test_connectivity (HEAD request)",
    )
    probe_timeout: float = Field(
        default=DEFAULT_PROBE_TIMEOUT_SECONDS,
        gt=0,
        description="Timeout for a single connectivity probe (seconds)",
    )


class ControllerConfig(BaseModel):
    """Defaults used to complete call-site ErrorContexts."""

    default_url: str = Field(
        default=DEFAULT_CONTEXT_URL,
        description="Location recorded when a call site supplies none",
    )
    client_name: str = Field(
        default="rebound",
        description="Prefix of the client fingerprint recorded as user_agent",
    )
    busy_policy: Literal["reject", "queue"] = Field(
        default="reject",
        description="What a second call does while a sequence is in flight",
    )


class LogConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level to capture",
    )
    format: Literal["json", "console"] = Field(
        default="console",
        description="json for structured, console for human-readable",
    )
    file_path: Path | None = Field(
        default=None,
        description="Optional rotating log file",
    )
    max_file_size_mb: int = Field(default=10, gt=0, le=1000)
    backup_count: int = Field(default=3, ge=0, le=100)
    include_timestamps: bool = True
    include_context: bool = True


class ReboundConfig(BaseModel):
    """Top-level configuration."""

    retry: RetryConfig = Field(default_factory=RetryConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    controller: ControllerConfig = Field(default_factory=ControllerConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> ReboundConfig:
        """Load configuration from a YAML file.

        Raises:
            ConfigError: If the file is missing, unparseable, or invalid.
        """
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse config {path}: {e}") from e

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(f"Config {path} must contain a mapping at top level")

        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid config {path}: {e}") from e


def load_config(path: Path | None = None) -> ReboundConfig:
    """Load configuration from ``path``, or return defaults when None."""
    if path is None:
        return ReboundConfig()
    return ReboundConfig.from_yaml(path)
