"""Tests for rebound.execution.backoff."""

import random

import pytest

from rebound.core.errors import AppError, ErrorCode, ErrorContext, ErrorKind
from rebound.execution import (
    BackoffDelay,
    apply_jitter,
    backoff_for_error,
    backoff_schedule,
    compute_backoff,
)
from tests.helpers import FixedRandom


def _error(
    context: ErrorContext,
    code: ErrorCode = ErrorCode.NETWORK_CONNECTION_FAILED,
    suggested: float | None = None,
) -> AppError:
    kind = code.kind
    return AppError(
        kind=kind,
        severity=code.severity,
        retryable=kind.policy.retryable,
        recoverable=kind.policy.recoverable,
        original_message="x",
        context=context,
        code=code,
        suggested_wait_seconds=suggested,
    )


class TestComputeBackoff:
    """Tests for the pre-jitter delay."""

    def test_network_doubles(self):
        assert [compute_backoff(n, 1.0, ErrorKind.NETWORK) for n in (1, 2, 3, 4)] == [
            1.0,
            2.0,
            4.0,
            8.0,
        ]

    def test_rate_limited_quadruples(self):
        assert [compute_backoff(n, 1.0, ErrorKind.RATE_LIMITED) for n in (1, 2, 3)] == [
            1.0,
            4.0,
            16.0,
        ]

    def test_capped_at_ceiling(self):
        assert compute_backoff(10, 1.0, ErrorKind.NETWORK) == 30.0
        assert compute_backoff(3, 1.0, ErrorKind.NETWORK, max_delay=3.0) == 3.0

    def test_huge_attempt_does_not_overflow(self):
        assert compute_backoff(10_000, 1.0, ErrorKind.RATE_LIMITED) == 30.0

    def test_attempt_must_be_positive(self):
        with pytest.raises(ValueError):
            compute_backoff(0, 1.0, ErrorKind.NETWORK)

    @pytest.mark.parametrize("kind", [ErrorKind.NETWORK, ErrorKind.TIMEOUT, ErrorKind.RATE_LIMITED])
    @pytest.mark.parametrize("base_delay", [0.1, 1.0, 7.5])
    def test_monotonic_and_bounded(self, kind: ErrorKind, base_delay: float):
        delays = [compute_backoff(n, base_delay, kind) for n in range(1, 40)]
        assert delays == sorted(delays)
        assert max(delays) <= 30.0


class TestJitter:
    """Tests for apply_jitter."""

    def test_zero_factor(self):
        assert apply_jitter(5.0, 0.0) == 0.0

    def test_within_range(self):
        rng = random.Random(42)
        for _ in range(100):
            value = apply_jitter(4.0, 1.0, rng)
            assert 0.0 <= value <= 4.0

    def test_scaled_by_factor(self):
        assert apply_jitter(4.0, 0.5, FixedRandom(1.0)) == 2.0


class TestBackoffForError:
    """Tests for the full wait computation."""

    def test_delay_plus_jitter(self, context: ErrorContext):
        wait = backoff_for_error(_error(context), 2, 1.0, rng=FixedRandom(0.5))
        assert wait == BackoffDelay(delay=2.0, jitter=1.0)
        assert wait.total == 3.0

    def test_retry_after_raises_delay(self, context: ErrorContext):
        error = _error(context, ErrorCode.RATE_LIMITED, suggested=12.0)
        wait = backoff_for_error(error, 1, 1.0, jitter_factor=0.0)
        assert wait.delay == 12.0

    def test_retry_after_never_lowers_delay(self, context: ErrorContext):
        error = _error(context, ErrorCode.RATE_LIMITED, suggested=0.5)
        wait = backoff_for_error(error, 2, 1.0, jitter_factor=0.0)
        assert wait.delay == 4.0

    def test_retry_after_still_capped(self, context: ErrorContext):
        error = _error(context, ErrorCode.RATE_LIMITED, suggested=3600.0)
        wait = backoff_for_error(error, 1, 1.0, jitter_factor=0.0)
        assert wait.delay == 30.0

    def test_offline_network_waits_ceiling(self, context: ErrorContext):
        wait = backoff_for_error(_error(context), 1, 1.0, jitter_factor=0.0, offline=True)
        assert wait.delay == 30.0

    def test_offline_does_not_affect_timeouts(self, context: ErrorContext):
        error = _error(context, ErrorCode.TIMEOUT_ELAPSED)
        wait = backoff_for_error(error, 1, 1.0, jitter_factor=0.0, offline=True)
        assert wait.delay == 1.0

    def test_jitter_added_on_top_of_ceiling(self, context: ErrorContext):
        wait = backoff_for_error(_error(context), 10, 1.0, rng=FixedRandom(1.0))
        assert wait.delay == 30.0
        assert wait.jitter == 30.0
        assert wait.total == 60.0


class TestBackoffSchedule:
    """Tests for backoff_schedule."""

    def test_one_delay_per_retry(self):
        assert backoff_schedule(ErrorKind.NETWORK, 3, 1.0) == [1.0, 2.0]

    def test_single_attempt_has_no_retry(self):
        assert backoff_schedule(ErrorKind.NETWORK, 1, 1.0) == []
