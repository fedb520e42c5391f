"""Error classification.

Re-exports all public symbols of the error taxonomy.
"""

from rebound.core.errors.codes import (
    ErrorCode,
    ErrorKind,
    KindPolicy,
    Severity,
)
from rebound.core.errors.models import (
    AppError,
    ErrorContext,
    RecoveryResult,
    RecoveryStrategy,
    RetryOptions,
)
from rebound.core.errors.classifier import ErrorClassifier, classify, parse_retry_after

__all__ = [
    "ErrorCode",
    "ErrorKind",
    "KindPolicy",
    "Severity",
    "AppError",
    "ErrorContext",
    "RecoveryResult",
    "RecoveryStrategy",
    "RetryOptions",
    "ErrorClassifier",
    "classify",
    "parse_retry_after",
]
