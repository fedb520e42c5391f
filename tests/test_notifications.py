"""Tests for rebound.notifications."""

import json

import pytest

from rebound.core.errors import AppError, ErrorCode, ErrorContext, ErrorKind
from rebound.notifications import (
    CRITICAL_SUGGESTIONS,
    format_for_logging,
    get_fallback_message,
    get_recovery_suggestions,
    get_user_message,
    requires_external_action,
)


def _error(context: ErrorContext, code: ErrorCode, status_code: int | None = None) -> AppError:
    kind = code.kind
    fatal = code is ErrorCode.RUNTIME_FATAL
    return AppError(
        kind=kind,
        severity=code.severity,
        retryable=kind.policy.retryable and not fatal,
        recoverable=kind.policy.recoverable and not fatal,
        original_message="raw failure text",
        context=context,
        code=code,
        status_code=status_code,
    )


class TestUserMessages:
    """get_user_message lookups."""

    @pytest.mark.parametrize("code", list(ErrorCode))
    def test_every_code_has_message_and_suggestion(self, context: ErrorContext, code: ErrorCode):
        error = _error(context, code)
        assert get_user_message(error)
        assert len(get_recovery_suggestions(error)) >= 1

    def test_network_message(self, context: ErrorContext):
        message = get_user_message(_error(context, ErrorCode.NETWORK_CONNECTION_FAILED))
        assert "internet connection" in message

    def test_same_kind_same_copy(self, context: ErrorContext):
        dns = _error(context, ErrorCode.NETWORK_DNS_FAILED)
        unavailable = _error(context, ErrorCode.SERVICE_UNAVAILABLE)
        assert get_user_message(dns) == get_user_message(unavailable)
        assert get_recovery_suggestions(dns) == get_recovery_suggestions(unavailable)

    def test_raw_message_not_exposed(self, context: ErrorContext):
        error = _error(context, ErrorCode.UNKNOWN)
        assert "raw failure text" not in get_user_message(error)

    def test_suggestions_are_fresh_lists(self, context: ErrorContext):
        error = _error(context, ErrorCode.TIMEOUT_ELAPSED)
        get_recovery_suggestions(error).append("mutated")
        assert "mutated" not in get_recovery_suggestions(error)


class TestCriticalErrors:
    """Critical failures point outside the retry loop."""

    def test_no_try_again_suggestion(self, context: ErrorContext):
        suggestions = get_recovery_suggestions(_error(context, ErrorCode.RUNTIME_FATAL))
        assert suggestions == list(CRITICAL_SUGGESTIONS)
        assert not any("try again" in s.lower() for s in suggestions)

    def test_requires_external_action(self, context: ErrorContext):
        assert requires_external_action(_error(context, ErrorCode.RUNTIME_FATAL))

    def test_fallback_asks_for_reload(self, context: ErrorContext):
        assert "reload" in get_fallback_message(_error(context, ErrorCode.RUNTIME_FATAL))


class TestExternalAction:
    """requires_external_action by kind."""

    @pytest.mark.parametrize(
        "code,expected",
        [
            (ErrorCode.AUTH_UNAUTHENTICATED, True),
            (ErrorCode.POLICY_CORS, True),
            (ErrorCode.NETWORK_CONNECTION_FAILED, False),
            (ErrorCode.RATE_LIMITED, False),
            (ErrorCode.VALIDATION_BAD_REQUEST, False),
        ],
    )
    def test_by_kind(self, context: ErrorContext, code: ErrorCode, expected: bool):
        assert requires_external_action(_error(context, code)) is expected

    def test_fallback_for_non_critical(self, context: ErrorContext):
        message = get_fallback_message(_error(context, ErrorCode.TIMEOUT_ELAPSED))
        assert "refreshing" in message


class TestFormatForLogging:
    """format_for_logging output."""

    def test_fields(self, context: ErrorContext):
        error = _error(context, ErrorCode.RATE_LIMITED, status_code=429)
        data = format_for_logging(error)

        assert data["kind"] == ErrorKind.RATE_LIMITED.value
        assert data["error_code"] == "E301"
        assert data["severity"] == "medium"
        assert data["status_code"] == 429
        assert data["retryable"] is True
        assert data["context"]["action"] == "send_message"
        assert data["user_message"] == get_user_message(error)

    def test_json_serializable(self, context: ErrorContext):
        data = format_for_logging(_error(context, ErrorCode.UNKNOWN))
        assert json.loads(json.dumps(data)) == data
