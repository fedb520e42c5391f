"""ErrorClassifier implementation for raw failure classification.

Turns any raised exception plus its ErrorContext into an AppError. The
classifier inspects, in priority order, the exception type (walking the
``__cause__`` / ``__context__`` chain), the HTTP status if a response was
received, and finally regex patterns on the message text.

Classification is pure and never raises: an internal failure degrades to
``ErrorKind.UNKNOWN`` with code E904.
"""

from __future__ import annotations

import json
import re
import socket
import ssl
from collections.abc import Iterator, Mapping
from datetime import datetime
from email.utils import parsedate_to_datetime

import httpx
import pydantic

from rebound.core.constants import TRUNCATE_ORIGINAL_MESSAGE_CHARS
from rebound.core.exceptions import ServiceResponseError
from rebound.core.logging import get_logger

from .codes import ErrorCode, ErrorKind, Severity
from .models import AppError, ErrorContext

_logger = get_logger("errors")


# =============================================================================
# Default pattern strings for ErrorClassifier.
# Only consulted when the exception type and status code are inconclusive.
# =============================================================================

_DEFAULT_NETWORK_PATTERNS: list[str] = [
    r"connection.?refused",
    r"connection.?reset",
    r"connection.?aborted",
    r"network.?(is.?)?unreachable",
    r"no route to host",
    r"failed to fetch",
    r"fetch failed",
    r"network.?error",
    r"server disconnected",
    r"ECONNREFUSED",
    r"ECONNRESET",
]

_DEFAULT_DNS_PATTERNS: list[str] = [
    r"dns.?(resolution|lookup)",
    r"name.?resolution",
    r"getaddrinfo",
    r"could not resolve",
    r"nodename nor servname",
    r"ENOTFOUND",
]

_DEFAULT_TIMEOUT_PATTERNS: list[str] = [
    r"timed?.?out",
    r"timeout",
    r"deadline.?exceeded",
    r"ETIMEDOUT",
]

_DEFAULT_RATE_LIMIT_PATTERNS: list[str] = [
    r"rate.?limit",
    r"too many requests",
    r"throttl",
    r"quota.?exceeded",
    r"slow down",
]

_DEFAULT_AUTH_PATTERNS: list[str] = [
    r"unauthori[sz]ed",
    r"unauthenticated",
    r"not.?authenticated",
    r"invalid.?(api.?key|token|credentials)",
    r"token.?(has.?)?expired",
    r"access.?denied",
    r"forbidden",
]

_DEFAULT_VALIDATION_PATTERNS: list[str] = [
    r"validation.?(error|failed)",
    r"invalid.?(input|parameter|argument|request)",
    r"bad.?request",
    r"missing.?required",
    r"malformed.?request",
]

_DEFAULT_POLICY_PATTERNS: list[str] = [
    r"\bcors\b",
    r"cross.?origin",
    r"blocked by .{0,30}policy",
    r"content.?security.?policy",
    r"mixed.?content",
]

_DEFAULT_TLS_PATTERNS: list[str] = [
    r"certificate.?verify.?failed",
    r"CERTIFICATE_VERIFY_FAILED",
    r"self.?signed certificate",
    r"hostname .{0,40}doesn't match",
]

_FATAL_EXCEPTION_TYPES: tuple[type[BaseException], ...] = (MemoryError, RecursionError)

_TRANSPORT_EXCEPTION_TYPES: tuple[type[BaseException], ...] = (
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ConnectionError,
    socket.gaierror,
)

_TIMEOUT_EXCEPTION_TYPES: tuple[type[BaseException], ...] = (
    TimeoutError,
    httpx.TimeoutException,
)

_MAX_CHAIN_DEPTH = 5


def _compile_patterns(strings: list[str]) -> re.Pattern[str]:
    """Merge regex strings into one case-insensitive alternation."""
    return re.compile("|".join(f"(?:{p})" for p in strings), re.IGNORECASE)


def _iter_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield the exception and its causes, bounded and cycle-safe."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen and len(seen) < _MAX_CHAIN_DEPTH:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _extract_status(exc: BaseException) -> int | None:
    """Find an HTTP-style status code on the failure, if one exists."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    if isinstance(exc, ServiceResponseError):
        return exc.status_code
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _extract_headers(exc: BaseException) -> Mapping[str, str]:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.headers
    if isinstance(exc, ServiceResponseError):
        return exc.headers
    return {}


def parse_retry_after(value: str | None, now: datetime) -> float | None:
    """Parse a Retry-After header into seconds from ``now``.

    Accepts delta-seconds or an HTTP-date. Returns None when the header
    is absent or unparseable; never returns a negative wait.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None or now.tzinfo is None:
        return None
    return max((when - now).total_seconds(), 0.0)


class ErrorClassifier:
    """Classifies raw failures into AppError values.

    Rules are applied in priority order; the first match wins:

    1. Transport failures before any response -> network
    2. Elapsed time budget -> timeout
    3. Rate-limit signal -> rate_limited
    4. Authentication/authorization refusal -> auth
    5. Malformed request -> validation
    6. Cross-origin / security policy rejection -> policy
    7. Anything else -> unknown (not retried)

    Interpreter-level failures (MemoryError, RecursionError) short-circuit
    to a critical unknown error before the rules run.
    """

    def __init__(
        self,
        network_patterns: list[str] | None = None,
        timeout_patterns: list[str] | None = None,
        rate_limit_patterns: list[str] | None = None,
        auth_patterns: list[str] | None = None,
    ) -> None:
        """Initialize classifier with detection patterns.

        Args:
            network_patterns: Regex patterns indicating transport failures.
            timeout_patterns: Regex patterns indicating timeouts.
            rate_limit_patterns: Regex patterns indicating throttling.
            auth_patterns: Regex patterns indicating auth refusal.
        """
        self.network_pattern = _compile_patterns(network_patterns or _DEFAULT_NETWORK_PATTERNS)
        self.dns_pattern = _compile_patterns(_DEFAULT_DNS_PATTERNS)
        self.timeout_pattern = _compile_patterns(timeout_patterns or _DEFAULT_TIMEOUT_PATTERNS)
        self.rate_limit_pattern = _compile_patterns(
            rate_limit_patterns or _DEFAULT_RATE_LIMIT_PATTERNS
        )
        self.auth_pattern = _compile_patterns(auth_patterns or _DEFAULT_AUTH_PATTERNS)
        self.validation_pattern = _compile_patterns(_DEFAULT_VALIDATION_PATTERNS)
        self.policy_pattern = _compile_patterns(_DEFAULT_POLICY_PATTERNS)
        self.tls_pattern = _compile_patterns(_DEFAULT_TLS_PATTERNS)

    def classify(self, exc: BaseException, context: ErrorContext) -> AppError:
        """Classify a raw failure.

        Args:
            exc: The exception raised by the operation.
            context: Provenance of the failing invocation.

        Returns:
            AppError for the failure. Never raises.
        """
        try:
            error = self._classify(exc, context)
        except Exception:
            _logger.error(
                "error_classification_failed",
                action=context.action,
                exception_type=type(exc).__name__,
                exc_info=True,
            )
            error = self._build(
                ErrorCode.CLASSIFICATION_FAILED, exc, context, message=_safe_str(exc)
            )

        _logger.debug(
            "error_classified",
            action=context.action,
            kind=error.kind.value,
            error_code=error.code.value,
            severity=error.severity.label,
            retryable=error.retryable,
            status_code=error.status_code,
        )
        return error

    @staticmethod
    def is_retryable(error: AppError) -> bool:
        """Whether the scheduler may retry this error."""
        return error.retryable and error.kind.policy.retryable

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _classify(self, exc: BaseException, context: ErrorContext) -> AppError:
        chain = list(_iter_chain(exc))
        message = str(exc)

        if any(isinstance(e, _FATAL_EXCEPTION_TYPES) for e in chain):
            return self._build(ErrorCode.RUNTIME_FATAL, exc, context, message=message)

        status = _extract_status(exc)
        if status is not None:
            return self._classify_status(status, exc, context, message)

        # No response received: type first, then message patterns.
        policy_code = self._policy_code(chain, message)
        if policy_code is None and self._is_transport_failure(chain, message):
            code = (
                ErrorCode.NETWORK_DNS_FAILED
                if any(isinstance(e, socket.gaierror) for e in chain)
                or self.dns_pattern.search(message)
                else ErrorCode.NETWORK_CONNECTION_FAILED
            )
            return self._build(code, exc, context, message=message)

        if any(isinstance(e, _TIMEOUT_EXCEPTION_TYPES) for e in chain) or (
            self.timeout_pattern.search(message)
        ):
            return self._build(ErrorCode.TIMEOUT_ELAPSED, exc, context, message=message)

        if self.rate_limit_pattern.search(message):
            return self._build(ErrorCode.RATE_LIMITED, exc, context, message=message)

        if self.auth_pattern.search(message):
            return self._build(ErrorCode.AUTH_UNAUTHENTICATED, exc, context, message=message)

        if any(isinstance(e, pydantic.ValidationError) for e in chain):
            return self._build(ErrorCode.VALIDATION_SCHEMA, exc, context, message=message)
        if self.validation_pattern.search(message):
            return self._build(ErrorCode.VALIDATION_BAD_REQUEST, exc, context, message=message)

        if policy_code is not None:
            return self._build(policy_code, exc, context, message=message)

        if any(isinstance(e, json.JSONDecodeError) for e in chain):
            return self._build(ErrorCode.UNEXPECTED_RESPONSE, exc, context, message=message)

        return self._build(ErrorCode.UNKNOWN, exc, context, message=message)

    def _classify_status(
        self,
        status: int,
        exc: BaseException,
        context: ErrorContext,
        message: str,
    ) -> AppError:
        if status in (408, 504):
            code = ErrorCode.TIMEOUT_GATEWAY
        elif status == 429:
            retry_after = parse_retry_after(
                _extract_headers(exc).get("retry-after"), context.timestamp
            )
            return self._build(
                ErrorCode.RATE_LIMITED,
                exc,
                context,
                message=message,
                status_code=status,
                suggested_wait_seconds=retry_after,
            )
        elif status == 401:
            code = ErrorCode.AUTH_UNAUTHENTICATED
        elif status == 403:
            # Some gateways answer CORS/CSP rejections with 403 and say so.
            code = (
                ErrorCode.POLICY_CORS
                if self.policy_pattern.search(message)
                else ErrorCode.AUTH_FORBIDDEN
            )
        elif status in (502, 503):
            code = ErrorCode.SERVICE_UNAVAILABLE
        elif 400 <= status < 500:
            code = ErrorCode.VALIDATION_BAD_REQUEST
        else:
            code = ErrorCode.UNEXPECTED_RESPONSE
        return self._build(code, exc, context, message=message, status_code=status)

    def _is_transport_failure(self, chain: list[BaseException], message: str) -> bool:
        if any(isinstance(e, _TRANSPORT_EXCEPTION_TYPES) for e in chain):
            return True
        return bool(self.network_pattern.search(message) or self.dns_pattern.search(message))

    def _policy_code(self, chain: list[BaseException], message: str) -> ErrorCode | None:
        if any(isinstance(e, ssl.SSLCertVerificationError) for e in chain) or (
            self.tls_pattern.search(message)
        ):
            return ErrorCode.POLICY_TLS
        if self.policy_pattern.search(message):
            return ErrorCode.POLICY_CORS
        return None

    @staticmethod
    def _build(
        code: ErrorCode,
        exc: BaseException,
        context: ErrorContext,
        *,
        message: str,
        status_code: int | None = None,
        suggested_wait_seconds: float | None = None,
    ) -> AppError:
        kind = code.kind
        fatal = code is ErrorCode.RUNTIME_FATAL
        return AppError(
            kind=kind,
            severity=code.severity,
            retryable=kind.policy.retryable and not fatal,
            recoverable=kind.policy.recoverable and not fatal,
            original_message=(message or type(exc).__name__)[:TRUNCATE_ORIGINAL_MESSAGE_CHARS],
            context=context,
            code=code,
            status_code=status_code,
            suggested_wait_seconds=suggested_wait_seconds,
            exception=exc,
        )


def _safe_str(exc: BaseException) -> str:
    try:
        return str(exc)
    except Exception:
        return type(exc).__name__


_default_classifier = ErrorClassifier()


def classify(exc: BaseException, context: ErrorContext) -> AppError:
    """Classify with the module-level default classifier."""
    return _default_classifier.classify(exc, context)
