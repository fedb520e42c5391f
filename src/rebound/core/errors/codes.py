"""Error kinds, codes, and severity levels.

Contains the closed error taxonomy used throughout rebound.

This module provides:
- ErrorKind: The closed set of failure kinds that drive retry decisions
- Severity: Ordered severity levels
- KindPolicy: Fixed per-kind defaults (retryable, recoverable, multiplier)
- ErrorCode: Stable diagnostic codes that refine a kind

Error Code Taxonomy
===================

Codes are grouped by kind using the first digit:

    | Range | Kind         | Retryable | Default Severity |
    |-------|--------------|-----------|------------------|
    | E1xx  | network      | Yes       | high             |
    | E2xx  | timeout      | Yes       | medium           |
    | E3xx  | rate_limited | Yes       | medium           |
    | E4xx  | auth         | No        | high             |
    | E5xx  | validation   | No        | low              |
    | E6xx  | policy       | No        | high             |
    | E9xx  | unknown      | No        | medium           |

E903 (RUNTIME_FATAL) is the only code with critical severity.

Example::

    error = classifier.classify(exc, context)
    if error.kind is ErrorKind.RATE_LIMITED:
        multiplier = error.kind.policy.backoff_multiplier
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import NamedTuple

# =============================================================================
# Severity Levels
# =============================================================================


class Severity(IntEnum):
    """Ordered severity levels.

    Higher numeric value = more severe, so ``severity >= Severity.HIGH``
    selects serious failures.
    """

    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        """Lowercase name used in logs and user-facing output."""
        return self.name.lower()


# =============================================================================
# Error Kinds
# =============================================================================


class KindPolicy(NamedTuple):
    """Fixed defaults attached to an error kind.

    Attributes:
        retryable: Whether the scheduler may retry failures of this kind.
        recoverable: Whether application state stays usable without a reload.
        severity: Default severity for the kind.
        backoff_multiplier: Exponential base used when computing backoff.
    """

    retryable: bool
    recoverable: bool
    severity: Severity
    backoff_multiplier: float


class ErrorKind(str, Enum):
    """Closed taxonomy of failure kinds.

    The kind alone determines retry and notification behavior; the
    ErrorCode only refines it for diagnostics.
    """

    NETWORK = "network"
    """Transport failed before any response was received."""

    TIMEOUT = "timeout"
    """The operation's wall-clock budget elapsed."""

    RATE_LIMITED = "rate_limited"
    """The service signalled backpressure."""

    AUTH = "auth"
    """Authentication or authorization was refused."""

    VALIDATION = "validation"
    """The request was malformed."""

    POLICY = "policy"
    """A cross-origin or security policy rejected the request."""

    UNKNOWN = "unknown"
    """Anything the classifier cannot explain."""

    @property
    def policy(self) -> KindPolicy:
        """Fixed per-kind defaults."""
        return _KIND_POLICIES[self]

    @property
    def message_key(self) -> str:
        """Lookup key for user-facing copy."""
        return f"errors.{self.value}"


_KIND_POLICIES: dict[ErrorKind, KindPolicy] = {
    ErrorKind.NETWORK: KindPolicy(
        retryable=True, recoverable=True, severity=Severity.HIGH, backoff_multiplier=2.0,
    ),
    ErrorKind.TIMEOUT: KindPolicy(
        retryable=True, recoverable=True, severity=Severity.MEDIUM, backoff_multiplier=2.0,
    ),
    ErrorKind.RATE_LIMITED: KindPolicy(
        retryable=True, recoverable=True, severity=Severity.MEDIUM, backoff_multiplier=4.0,
    ),
    ErrorKind.AUTH: KindPolicy(
        retryable=False, recoverable=True, severity=Severity.HIGH, backoff_multiplier=2.0,
    ),
    ErrorKind.VALIDATION: KindPolicy(
        retryable=False, recoverable=True, severity=Severity.LOW, backoff_multiplier=2.0,
    ),
    ErrorKind.POLICY: KindPolicy(
        retryable=False, recoverable=False, severity=Severity.HIGH, backoff_multiplier=2.0,
    ),
    ErrorKind.UNKNOWN: KindPolicy(
        retryable=False, recoverable=True, severity=Severity.MEDIUM, backoff_multiplier=2.0,
    ),
}


# =============================================================================
# Error Codes
# =============================================================================


class ErrorCode(str, Enum):
    """Stable diagnostic codes.

    Codes are used for log aggregation and troubleshooting. Use
    ``code.kind`` to find the taxonomy entry a code belongs to.
    """

    # E1xx: Network
    NETWORK_CONNECTION_FAILED = "E101"
    """Connection refused, reset, or unreachable."""

    NETWORK_DNS_FAILED = "E102"
    """Host name could not be resolved."""

    SERVICE_UNAVAILABLE = "E103"
    """Upstream answered 502/503; treated as a transient transport fault."""

    # E2xx: Timeout
    TIMEOUT_ELAPSED = "E201"
    """Client-side timeout fired before the operation completed."""

    TIMEOUT_GATEWAY = "E202"
    """Server or gateway reported a timeout (408/504)."""

    # E3xx: Rate limit
    RATE_LIMITED = "E301"
    """429 or throttling text."""

    # E4xx: Auth
    AUTH_UNAUTHENTICATED = "E401"
    """Credentials missing or expired (401)."""

    AUTH_FORBIDDEN = "E402"
    """Credentials valid but access refused (403)."""

    # E5xx: Validation
    VALIDATION_BAD_REQUEST = "E501"
    """Service rejected the request as malformed (4xx)."""

    VALIDATION_SCHEMA = "E502"
    """Local schema validation failed before or after the call."""

    # E6xx: Policy
    POLICY_TLS = "E601"
    """TLS certificate verification failed."""

    POLICY_CORS = "E602"
    """Cross-origin or content security policy rejection."""

    # E9xx: Unknown
    UNKNOWN = "E901"
    """Unclassified failure."""

    UNEXPECTED_RESPONSE = "E902"
    """Transport succeeded but the response had an unexpected shape."""

    RUNTIME_FATAL = "E903"
    """Interpreter-level failure (out of memory, recursion limit)."""

    CLASSIFICATION_FAILED = "E904"
    """The classifier itself failed while inspecting the error."""

    @property
    def kind(self) -> ErrorKind:
        """Taxonomy entry for this code, from its first digit."""
        return _KIND_BY_PREFIX.get(self.value[1], ErrorKind.UNKNOWN)

    @property
    def severity(self) -> Severity:
        """Severity for errors carrying this code."""
        if self is ErrorCode.RUNTIME_FATAL:
            return Severity.CRITICAL
        return self.kind.policy.severity


_KIND_BY_PREFIX: dict[str, ErrorKind] = {
    "1": ErrorKind.NETWORK,
    "2": ErrorKind.TIMEOUT,
    "3": ErrorKind.RATE_LIMITED,
    "4": ErrorKind.AUTH,
    "5": ErrorKind.VALIDATION,
    "6": ErrorKind.POLICY,
    "9": ErrorKind.UNKNOWN,
}
