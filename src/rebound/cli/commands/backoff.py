"""Backoff command for the rebound CLI.

Prints the pre-jitter delay before each retry for a given error kind, so
operators can see the worst-case latency a retry policy implies.
"""

from __future__ import annotations

import typer

from rebound.core.errors import ErrorKind
from rebound.execution import backoff_schedule

from ..helpers import configure_global_logging, get_config
from ..output import console, create_backoff_table, format_seconds, print_json


def backoff(
    kind: ErrorKind = typer.Option(
        ErrorKind.NETWORK,
        "--kind",
        "-k",
        case_sensitive=False,
        help="Error kind whose multiplier applies",
    ),
    attempts: int | None = typer.Option(
        None,
        "--attempts",
        "-n",
        min=1,
        help="Total attempts including the first (default: config max_retries)",
    ),
    base_delay: float | None = typer.Option(
        None,
        "--base-delay",
        "-b",
        min=0.001,
        help="Seconds before the first retry (default: config base_delay)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output the schedule as JSON",
    ),
) -> None:
    """Show the backoff schedule for an error kind."""
    configure_global_logging(console)
    retry = get_config(console).retry

    total_attempts = attempts if attempts is not None else retry.max_retries
    base = base_delay if base_delay is not None else retry.base_delay
    max_delay = max(retry.max_delay, base)
    delays = backoff_schedule(kind, total_attempts, base, max_delay)
    retried = kind.policy.retryable

    if json_output:
        print_json({
            "kind": kind.value,
            "retryable": retried,
            "attempts": total_attempts,
            "base_delay": base,
            "max_delay": max_delay,
            "jitter_factor": retry.jitter_factor,
            "delays": delays if retried else [],
        })
        return

    if not retried:
        console.print(f"[yellow]{kind.value} errors are not retried.[/yellow]")
        return
    if not delays:
        console.print("[dim]A single attempt performs no retry.[/dim]")
        return

    table = create_backoff_table(kind)
    for index, delay in enumerate(delays, start=1):
        table.add_row(
            str(index),
            str(index),
            format_seconds(delay),
            format_seconds(delay * (1 + retry.jitter_factor)),
        )
    console.print(table)
    worst_case = sum(delays) * (1 + retry.jitter_factor)
    console.print(f"[dim]Worst case total wait: {format_seconds(worst_case)}[/dim]")
