"""User-facing messages and recovery suggestions for classified errors.

Stateless lookups keyed by error kind. The same kind always yields the
same copy, regardless of severity or how often it recurs. The only
exception is critical severity, whose suggestions point at an action
outside the retry loop instead of suggesting another try.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from rebound.core.errors import AppError, ErrorKind, Severity

# Keyed by AppError.message_key (see ErrorKind.message_key)
USER_MESSAGES: Mapping[str, str] = {
    ErrorKind.NETWORK.message_key: (
        "Connection lost. Please check your internet connection and try again."
    ),
    ErrorKind.TIMEOUT.message_key: "The request took too long. Please try again.",
    ErrorKind.RATE_LIMITED.message_key: (
        "You're sending requests too quickly. Please wait a moment."
    ),
    ErrorKind.AUTH.message_key: "Please sign in to continue.",
    ErrorKind.VALIDATION.message_key: "Please check your input and try again.",
    ErrorKind.POLICY.message_key: (
        "This request was blocked by a security policy. Please reload the application."
    ),
    ErrorKind.UNKNOWN.message_key: "Something went wrong. Please try again.",
}

RECOVERY_SUGGESTIONS: Mapping[str, tuple[str, ...]] = {
    ErrorKind.NETWORK.message_key: (
        "Check your internet connection",
        "Try again in a few seconds",
        "Switch to a different network if available",
    ),
    ErrorKind.TIMEOUT.message_key: (
        "Try again with a stable connection",
        "Break large requests into smaller ones",
    ),
    ErrorKind.RATE_LIMITED.message_key: (
        "Wait a moment before trying again",
        "Reduce the frequency of your requests",
    ),
    ErrorKind.AUTH.message_key: (
        "Sign in to your account",
        "Reset your password if needed",
    ),
    ErrorKind.VALIDATION.message_key: (
        "Double-check your input",
        "Make sure all required fields are filled",
    ),
    ErrorKind.POLICY.message_key: (
        "Reload the application",
        "Contact support if the problem persists",
    ),
}

GENERIC_SUGGESTIONS: tuple[str, ...] = (
    "Try refreshing the page",
    "Contact support if the problem continues",
)

CRITICAL_SUGGESTIONS: tuple[str, ...] = (
    "Reload the application",
    "Contact support if the problem continues",
)

GENERIC_MESSAGE = USER_MESSAGES[ErrorKind.UNKNOWN.message_key]


def get_user_message(error: AppError) -> str:
    """Human-readable message for ``error``; never empty."""
    return USER_MESSAGES.get(error.message_key, GENERIC_MESSAGE)


def get_recovery_suggestions(error: AppError) -> list[str]:
    """Ordered recovery suggestions for ``error``; never empty.

    Critical errors never receive a plain "try again" suggestion.
    """
    if error.severity is Severity.CRITICAL:
        return list(CRITICAL_SUGGESTIONS)
    return list(RECOVERY_SUGGESTIONS.get(error.message_key, GENERIC_SUGGESTIONS))


def requires_external_action(error: AppError) -> bool:
    """Whether recovery needs something outside the retry loop.

    True for critical failures and for kinds that retrying cannot fix
    (re-authentication, a blocked request).
    """
    return error.severity is Severity.CRITICAL or error.kind in (
        ErrorKind.AUTH,
        ErrorKind.POLICY,
    )


def get_fallback_message(error: AppError) -> str:
    """Short text for a boundary that replaces a failed section."""
    if error.severity is Severity.CRITICAL:
        return "A critical error occurred. Please reload the application."
    return "Something went wrong with this section. Please try refreshing."


def format_for_logging(error: AppError) -> dict[str, Any]:
    """JSON-safe representation of ``error`` for structured logs."""
    return {
        "kind": error.kind.value,
        "error_code": error.code.value,
        "severity": error.severity.label,
        "message": error.original_message,
        "user_message": get_user_message(error),
        "status_code": error.status_code,
        "context": error.context.to_dict(),
        "recoverable": error.recoverable,
        "retryable": error.retryable,
        "timestamp": datetime.now(UTC).isoformat(),
    }
