"""Shared CLI state: logging options and the loaded configuration.

Global options are collected by the app callback and applied once per
invocation, before any command runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import typer
from rich.console import Console

from rebound.core.config import ReboundConfig, load_config
from rebound.core.exceptions import ConfigError
from rebound.core.logging import configure_logging, get_logger

_logger = get_logger("cli")


# =============================================================================
# Logging configuration
# =============================================================================


@dataclass
class CliLoggingConfig:
    """Logging options given on the command line.

    None means "use the config file value" (or the CLI default when no
    config file was given).
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    format: Literal["json", "console"] | None = None
    configured: bool = False


# CLI output should not be drowned in engine logs by default
DEFAULT_CLI_LOG_LEVEL = "WARNING"

_log_config = CliLoggingConfig()
_config_path: Path | None = None
_config: ReboundConfig | None = None


def set_log_level(level: str) -> None:
    _log_config.level = level.upper()  # type: ignore[assignment]


def set_log_format(fmt: str) -> None:
    _log_config.format = fmt.lower()  # type: ignore[assignment]


def set_config_path(path: Path | None) -> None:
    """Select the YAML config loaded by ``get_config()``."""
    global _config_path, _config
    _config_path = path
    _config = None


def get_config(console: Console) -> ReboundConfig:
    """Load (once) and return the active configuration.

    Raises:
        typer.Exit: With code 2 if the config file cannot be loaded.
    """
    global _config
    if _config is None:
        try:
            _config = load_config(_config_path)
        except ConfigError as e:
            console.print(f"[red]Configuration error:[/red] {e}")
            raise typer.Exit(2) from None
    return _config


def configure_global_logging(console: Console) -> None:
    """Apply logging options. Only configures once per session.

    Raises:
        typer.Exit: If the level or format is not recognised.
    """
    if _log_config.configured:
        return

    log = get_config(console).logging
    level = _log_config.level or (log.level if _config_path else DEFAULT_CLI_LOG_LEVEL)
    fmt = _log_config.format or log.format
    try:
        configure_logging(
            level=level,
            format=fmt,
            file_path=log.file_path,
            max_file_size_mb=log.max_file_size_mb,
            backup_count=log.backup_count,
            include_timestamps=log.include_timestamps,
            include_context=log.include_context,
        )
    except ValueError as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None
    _log_config.configured = True
    _logger.debug("cli.logging_configured", level=level, format=fmt)


def reset_cli_state() -> None:
    """Forget CLI options and the loaded config (primarily for testing)."""
    global _log_config, _config_path, _config
    _log_config = CliLoggingConfig()
    _config_path = None
    _config = None


__all__ = [
    "CliLoggingConfig",
    "configure_global_logging",
    "get_config",
    "reset_cli_state",
    "set_config_path",
    "set_log_format",
    "set_log_level",
]
