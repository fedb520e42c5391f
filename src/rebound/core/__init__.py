"""Core domain models, configuration and logging for rebound."""

from rebound.core.clock import Clock, SystemClock
from rebound.core.errors import (
    AppError,
    ErrorClassifier,
    ErrorCode,
    ErrorContext,
    ErrorKind,
    RecoveryResult,
    RecoveryStrategy,
    RetryOptions,
    Severity,
)

__all__ = [
    "AppError",
    "Clock",
    "ErrorClassifier",
    "ErrorCode",
    "ErrorContext",
    "ErrorKind",
    "RecoveryResult",
    "RecoveryStrategy",
    "RetryOptions",
    "Severity",
    "SystemClock",
]
