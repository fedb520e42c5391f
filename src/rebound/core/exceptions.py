"""Exceptions raised by rebound itself.

Operation failures are never raised by the engine; they are classified
into AppError values and returned inside a RecoveryResult. The classes
here cover the remaining cases: failures signalled by call sites,
misuse of a controller, and configuration problems.
"""

from __future__ import annotations

from collections.abc import Mapping


class ReboundError(Exception):
    """Base class for all rebound exceptions."""


class ServiceResponseError(ReboundError):
    """A response was received but reports a failure status.

    Call sites that talk to services without httpx raise this so the
    classifier can route on the status code and headers.
    """

    def __init__(
        self,
        status_code: int,
        message: str = "",
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.headers: dict[str, str] = {k.lower(): v for k, v in (headers or {}).items()}
        super().__init__(message or f"Service responded with status {status_code}")


class RecoveryInProgressError(ReboundError):
    """A controller already has a retry sequence in flight."""


class RecoveryCancelledError(ReboundError):
    """The retry sequence was cancelled before producing a result."""


class InvalidTransitionError(ReboundError):
    """The scheduler state machine was asked to make an illegal move."""


class ConfigError(ReboundError):
    """Configuration could not be loaded or failed validation."""
