"""Display-ready text for classified errors."""

from rebound.notifications.messages import (
    CRITICAL_SUGGESTIONS,
    GENERIC_MESSAGE,
    GENERIC_SUGGESTIONS,
    RECOVERY_SUGGESTIONS,
    USER_MESSAGES,
    format_for_logging,
    get_fallback_message,
    get_recovery_suggestions,
    get_user_message,
    requires_external_action,
)

__all__ = [
    "CRITICAL_SUGGESTIONS",
    "GENERIC_MESSAGE",
    "GENERIC_SUGGESTIONS",
    "RECOVERY_SUGGESTIONS",
    "USER_MESSAGES",
    "format_for_logging",
    "get_fallback_message",
    "get_recovery_suggestions",
    "get_user_message",
    "requires_external_action",
]
