"""Data models for error classification and recovery.

This module provides:
- ErrorContext: Caller-supplied provenance attached at the call boundary
- AppError: Immutable classified failure
- RetryOptions: Per-call retry tuning
- RecoveryResult: Outcome of a scheduled operation
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from rebound.core.constants import (
    BACKOFF_CEILING_SECONDS,
    DEFAULT_BASE_DELAY_SECONDS,
    DEFAULT_JITTER_FACTOR,
    DEFAULT_MAX_ATTEMPTS,
)

from .codes import ErrorCode, ErrorKind, Severity

T = TypeVar("T")


@dataclass(frozen=True)
class ErrorContext:
    """Provenance for one recovery attempt sequence.

    Created fresh by the call site for every invocation and read-only to
    the engine. ``action`` is always supplied by the caller; the engine
    fills the other gaps with defaults but never invents an action.

    Attributes:
        action: Operation name (e.g. ``send_message``, ``save_progress``).
        timestamp: When the invocation started (UTC).
        url: Location of the caller (page URL, endpoint, or app URI).
        user_agent: Client fingerprint.
        user_id: Optional user the operation runs for.
        conversation_id: Optional conversation the operation belongs to.
        additional_data: Free-form payload for diagnostics.
    """

    action: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    url: str | None = None
    user_agent: str | None = None
    user_id: str | None = None
    conversation_id: str | None = None
    additional_data: dict[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not self.action:
            raise ValueError("ErrorContext.action must be a non-empty string")

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary (None fields omitted)."""
        result: dict[str, Any] = {
            "action": self.action,
            "timestamp": self.timestamp.isoformat(),
        }
        for key in ("url", "user_agent", "user_id", "conversation_id"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.additional_data:
            result["additional_data"] = dict(self.additional_data)
        return result


@dataclass(frozen=True)
class AppError:
    """A classified failure.

    Immutable: reclassifying produces a new value. ``retryable`` comes from
    the kind's policy, never from caller intent.

    Attributes:
        kind: Taxonomy entry driving retry and notification behavior.
        severity: Ordered severity.
        retryable: Whether the scheduler may try again.
        recoverable: Whether the surrounding state is usable without reload.
        original_message: Raw underlying message, for diagnostics only.
        context: The ErrorContext active when the failure occurred.
        code: Diagnostic code refining the kind.
        status_code: HTTP-style status if a response was received.
        suggested_wait_seconds: Server-signalled wait (Retry-After).
        exception: The raw failure, kept for logging and re-raising.
    """

    kind: ErrorKind
    severity: Severity
    retryable: bool
    recoverable: bool
    original_message: str
    context: ErrorContext
    code: ErrorCode = ErrorCode.UNKNOWN
    status_code: int | None = None
    suggested_wait_seconds: float | None = None
    exception: BaseException | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.severity is Severity.CRITICAL and self.retryable:
            raise ValueError("critical errors cannot be retryable")

    @property
    def message_key(self) -> str:
        """Lookup key for user-facing copy."""
        return self.kind.message_key

    @property
    def is_rate_limit(self) -> bool:
        return self.kind is ErrorKind.RATE_LIMITED

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL


@dataclass(frozen=True)
class RetryOptions:
    """Per-call retry tuning.

    Frozen so the engine can never mutate caller-supplied options; use
    ``merged()`` to derive a working copy.

    Attributes:
        max_attempts: Total attempts including the first (>= 1).
        base_delay: Seconds before the first retry, pre-multiplier (> 0).
        max_delay: Ceiling for any computed delay, pre-jitter.
        jitter_factor: Jitter range as a fraction of the delay (0.0-1.0).
        retry_condition: Optional veto; returning False stops retrying.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY_SECONDS
    max_delay: float = BACKOFF_CEILING_SECONDS
    jitter_factor: float = DEFAULT_JITTER_FACTOR
    retry_condition: Callable[[BaseException], bool] | None = field(
        default=None, compare=False
    )

    def __post_init__(self) -> None:
        """Validate option values."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if not 0.0 <= self.jitter_factor <= 1.0:
            raise ValueError("jitter_factor must be between 0.0 and 1.0")

    def merged(self, **overrides: Any) -> RetryOptions:
        """Return a copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


class RecoveryStrategy(str, Enum):
    """How a RecoveryResult was reached."""

    DIRECT = "direct"
    RETRY = "retry"
    FAILED = "failed"


@dataclass(frozen=True)
class RecoveryResult(Generic[T]):
    """Outcome of a scheduled operation.

    Exactly one of ``data`` / ``error`` is meaningful: successes never carry
    an error, failures always do. ``data`` may legitimately be None when the
    operation itself returned None.

    Attributes:
        success: Whether an attempt succeeded.
        attempts_made: Attempts performed, in ``[1, max_attempts]``.
        data: Value returned by the successful attempt.
        error: The last raw failure before the sequence ended.
        app_error: Classification of ``error``.
        recovery_strategy: direct, retry, or failed.
    """

    success: bool
    attempts_made: int
    data: T | None = None
    error: BaseException | None = None
    app_error: AppError | None = None
    recovery_strategy: RecoveryStrategy = RecoveryStrategy.DIRECT

    def __post_init__(self) -> None:
        if self.attempts_made < 1:
            raise ValueError("attempts_made must be >= 1")
        if self.success and (self.error is not None or self.app_error is not None):
            raise ValueError("successful result cannot carry an error")
        if not self.success and (self.error is None or self.data is not None):
            raise ValueError("failed result must carry an error and no data")

    @classmethod
    def succeeded(cls, data: T, attempts_made: int) -> RecoveryResult[T]:
        strategy = RecoveryStrategy.RETRY if attempts_made > 1 else RecoveryStrategy.DIRECT
        return cls(
            success=True,
            attempts_made=attempts_made,
            data=data,
            recovery_strategy=strategy,
        )

    @classmethod
    def failed(
        cls,
        error: BaseException,
        app_error: AppError,
        attempts_made: int,
    ) -> RecoveryResult[T]:
        return cls(
            success=False,
            attempts_made=attempts_made,
            error=error,
            app_error=app_error,
            recovery_strategy=RecoveryStrategy.FAILED,
        )
