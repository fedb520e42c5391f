"""Rich output formatting for the rebound CLI.

Centralizes the console, color schemes and table builders so every
command renders errors and schedules the same way.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from rich.console import Console
from rich.table import Table

from rebound.core.errors import AppError, ErrorKind, Severity

# =============================================================================
# Shared console instance
# =============================================================================

console = Console()


# =============================================================================
# Color schemes
# =============================================================================


class StatusColors:
    """Color mappings for kinds and severities."""

    SEVERITY: dict[Severity, str] = {
        Severity.LOW: "green",
        Severity.MEDIUM: "yellow",
        Severity.HIGH: "red",
        Severity.CRITICAL: "bold red",
    }

    KIND: dict[ErrorKind, str] = {
        ErrorKind.NETWORK: "blue",
        ErrorKind.TIMEOUT: "yellow",
        ErrorKind.RATE_LIMITED: "magenta",
        ErrorKind.AUTH: "red",
        ErrorKind.VALIDATION: "cyan",
        ErrorKind.POLICY: "red",
        ErrorKind.UNKNOWN: "dim",
    }

    @classmethod
    def get_severity_color(cls, severity: Severity) -> str:
        return cls.SEVERITY.get(severity, "white")

    @classmethod
    def get_kind_color(cls, kind: ErrorKind) -> str:
        return cls.KIND.get(kind, "white")


def format_seconds(seconds: float | None) -> str:
    """Format a delay for display ("-" when absent)."""
    if seconds is None:
        return "-"
    return f"{seconds:.2f}s"


def format_bool(value: bool) -> str:
    return "[green]yes[/green]" if value else "[red]no[/red]"


# =============================================================================
# Table builders
# =============================================================================


def create_error_table(error: AppError, user_message: str) -> Table:
    """Key-value table describing one classified error."""
    kind_color = StatusColors.get_kind_color(error.kind)
    severity_color = StatusColors.get_severity_color(error.severity)

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold")
    table.add_column("Value", no_wrap=False)
    table.add_row("Kind", f"[{kind_color}]{error.kind.value}[/{kind_color}]")
    table.add_row("Code", error.code.value)
    table.add_row(
        "Severity", f"[{severity_color}]{error.severity.label}[/{severity_color}]"
    )
    table.add_row("Retryable", format_bool(error.retryable))
    table.add_row("Recoverable", format_bool(error.recoverable))
    if error.status_code is not None:
        table.add_row("Status", str(error.status_code))
    if error.suggested_wait_seconds is not None:
        table.add_row("Retry-After", format_seconds(error.suggested_wait_seconds))
    table.add_row("Message", user_message)
    return table


def create_backoff_table(kind: ErrorKind) -> Table:
    """Table for a pre-jitter backoff schedule."""
    table = Table(title=f"Backoff schedule ({kind.value})", show_header=True, header_style="bold")
    table.add_column("Retry", justify="right", style="cyan", width=5)
    table.add_column("After attempt", justify="right", width=13)
    table.add_column("Delay", justify="right", width=10)
    table.add_column("Max with jitter", justify="right", width=15)
    return table


def print_suggestions(suggestions: Sequence[str], console_instance: Console | None = None) -> None:
    out = console_instance or console
    out.print()
    out.print("[dim]Suggestions:[/dim]")
    for suggestion in suggestions:
        out.print(f"  - {suggestion}")


def print_json(data: dict[str, Any], console_instance: Console | None = None) -> None:
    """Print ``data`` as indented JSON.

    soft_wrap stops Rich from breaking long strings; markup is off so
    brackets in messages print verbatim.
    """
    (console_instance or console).print(
        json.dumps(data, indent=2, default=str),
        soft_wrap=True,
        highlight=False,
        markup=False,
    )
