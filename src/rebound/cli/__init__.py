"""Rebound CLI.

Package structure:
    cli/
    ├── __init__.py           # This file - app assembly
    ├── helpers.py            # Shared option and config state
    ├── output.py             # Rich formatting
    └── commands/
        ├── classify.py       # classify command
        ├── backoff.py        # backoff command
        └── probe.py          # probe command
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from rebound import __version__

from . import helpers as helpers
from .commands import backoff, classify, probe
from .helpers import (
    configure_global_logging,
    set_config_path,
    set_log_format,
    set_log_level,
)
from .output import console

# =============================================================================
# Typer app definition
# =============================================================================

app = typer.Typer(
    name="rebound",
    help="Inspect error classification, backoff and connectivity",
    add_completion=False,
)


# =============================================================================
# Global option callbacks
# =============================================================================


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"rebound v{__version__}")
        raise typer.Exit()


def log_level_callback(value: str | None) -> str | None:
    if value:
        set_log_level(value)
    return value


def log_format_callback(value: str | None) -> str | None:
    if value:
        set_log_format(value)
    return value


def config_callback(value: Path | None) -> Path | None:
    if value:
        set_config_path(value)
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=log_level_callback,
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="REBOUND_LOG_LEVEL",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: json or console",
            envvar="REBOUND_LOG_FORMAT",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            callback=config_callback,
            help="YAML configuration file",
            envvar="REBOUND_CONFIG",
        ),
    ] = None,
) -> None:
    """Rebound - error classification and recovery toolkit."""
    configure_global_logging(console)


# =============================================================================
# Command registration
# =============================================================================

app.command()(classify)
app.command()(backoff)
app.command()(probe)


__all__ = ["app", "main"]
