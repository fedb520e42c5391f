"""Probe command for the rebound CLI.

Runs one active connectivity check against a health URL.

Exit codes:
  0: Reachable (2xx response within the timeout)
  1: Unreachable
"""

from __future__ import annotations

import asyncio

import typer

from rebound.network import HttpNetworkProbe, NetworkMonitor

from ..helpers import configure_global_logging, get_config
from ..output import console, format_seconds, print_json


async def _run_probe(monitor: NetworkMonitor) -> bool:
    try:
        return await monitor.test_connectivity()
    finally:
        monitor.close()


def probe(
    url: str = typer.Argument(..., help="Health endpoint to probe (HEAD request)"),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        min=0.001,
        help="Probe timeout in seconds (default: config probe_timeout)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output the probe result as JSON",
    ),
) -> None:
    """Check whether a health endpoint is reachable."""
    configure_global_logging(console)
    probe_timeout = timeout if timeout is not None else get_config(console).network.probe_timeout

    monitor = NetworkMonitor(probe=HttpNetworkProbe(url), probe_timeout=probe_timeout)
    reachable = asyncio.run(_run_probe(monitor))

    if json_output:
        print_json({"url": url, "reachable": reachable, "timeout": probe_timeout})
    elif reachable:
        console.print(f"[green]Reachable:[/green] {url}")
    else:
        console.print(
            f"[red]Unreachable:[/red] {url} (timeout {format_seconds(probe_timeout)})"
        )

    if not reachable:
        raise typer.Exit(1)
