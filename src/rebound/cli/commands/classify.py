"""Classify command for the rebound CLI.

Runs a failure description through the classifier and shows what the
engine would do with it: kind, code, severity, retry decision and the
user-facing copy.
"""

from __future__ import annotations

import typer

from rebound.core.errors import ErrorClassifier, ErrorContext
from rebound.core.exceptions import ServiceResponseError
from rebound.notifications import (
    format_for_logging,
    get_recovery_suggestions,
    get_user_message,
    requires_external_action,
)

from ..helpers import configure_global_logging, get_config
from ..output import console, create_error_table, print_json, print_suggestions


def classify(
    message: str = typer.Argument(..., help="Failure message to classify"),
    status: int | None = typer.Option(
        None,
        "--status",
        "-s",
        help="HTTP status code the failing response carried",
        min=100,
        max=599,
    ),
    retry_after: str | None = typer.Option(
        None,
        "--retry-after",
        help="Retry-After header value sent with the response",
    ),
    action: str = typer.Option(
        "cli_classify",
        "--action",
        "-a",
        help="Operation name recorded on the error context",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output the classification as JSON",
    ),
) -> None:
    """Classify a failure and show the recovery decision."""
    configure_global_logging(console)
    config = get_config(console)

    exc: Exception
    if status is not None:
        headers = {"Retry-After": retry_after} if retry_after else None
        exc = ServiceResponseError(status, message, headers)
    else:
        exc = RuntimeError(message)

    context = ErrorContext(action=action, url=config.controller.default_url)
    error = ErrorClassifier().classify(exc, context)
    user_message = get_user_message(error)
    suggestions = get_recovery_suggestions(error)

    if json_output:
        data = format_for_logging(error)
        data["suggestions"] = suggestions
        data["requires_external_action"] = requires_external_action(error)
        print_json(data)
        return

    console.print(create_error_table(error, user_message))
    print_suggestions(suggestions)
    if requires_external_action(error):
        console.print()
        console.print("[yellow]Recovery needs action outside the retry loop.[/yellow]")
