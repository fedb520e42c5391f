"""Tests for rebound.execution.retry."""

import asyncio
import copy
from datetime import datetime

import pytest

from rebound.core.errors import ErrorContext, ErrorKind, RecoveryStrategy, RetryOptions
from rebound.core.exceptions import InvalidTransitionError, ServiceResponseError
from rebound.execution import RetryScheduler, SchedulerState
from rebound.execution.retry import _Sequence
from rebound.network import NetworkMonitor, StaticNetworkProbe
from tests.helpers import FakeClock, FixedRandom, always_failing, failing_then

NO_JITTER = RetryOptions(max_attempts=3, base_delay=1.0, jitter_factor=0.0)


@pytest.fixture
def scheduler(fake_clock: FakeClock) -> RetryScheduler:
    return RetryScheduler(clock=fake_clock, rng=FixedRandom(0.0))


class TestWithRetry:
    """Core retry loop behavior."""

    @pytest.mark.asyncio
    async def test_first_try_success(
        self, scheduler: RetryScheduler, fake_clock: FakeClock, context: ErrorContext
    ):
        operation, calls = failing_then([], result={"id": 1})
        result = await scheduler.with_retry(operation, context, NO_JITTER)

        assert result.success
        assert result.data == {"id": 1}
        assert result.attempts_made == 1
        assert result.recovery_strategy is RecoveryStrategy.DIRECT
        assert calls[0] == 1
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_recovers_after_two_network_failures(
        self, scheduler: RetryScheduler, fake_clock: FakeClock, context: ErrorContext
    ):
        operation, calls = failing_then(
            [ConnectionRefusedError("refused"), ConnectionRefusedError("refused")]
        )
        result = await scheduler.with_retry(operation, context, NO_JITTER)

        assert result.success
        assert result.attempts_made == 3
        assert result.error is None
        assert result.recovery_strategy is RecoveryStrategy.RETRY
        assert fake_clock.sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_jitter_added_on_top(self, fake_clock: FakeClock, context: ErrorContext):
        scheduler = RetryScheduler(clock=fake_clock, rng=FixedRandom(0.5))
        operation, _ = failing_then(
            [ConnectionRefusedError("refused"), ConnectionRefusedError("refused")]
        )
        options = RetryOptions(max_attempts=3, base_delay=1.0)
        result = await scheduler.with_retry(operation, context, options)

        assert result.success
        assert fake_clock.sleeps == [1.5, 3.0]

    @pytest.mark.asyncio
    async def test_non_retryable_fails_immediately(
        self, scheduler: RetryScheduler, fake_clock: FakeClock, context: ErrorContext
    ):
        operation, calls = always_failing(lambda: ServiceResponseError(400, "bad request"))
        result = await scheduler.with_retry(operation, context, NO_JITTER)

        assert not result.success
        assert result.attempts_made == 1
        assert result.data is None
        assert isinstance(result.error, ServiceResponseError)
        assert result.app_error is not None
        assert result.app_error.kind is ErrorKind.VALIDATION
        assert calls[0] == 1
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_exhausts_attempts(
        self, scheduler: RetryScheduler, fake_clock: FakeClock, context: ErrorContext
    ):
        operation, calls = always_failing(lambda: ConnectionResetError("reset"))
        options = RetryOptions(max_attempts=2, base_delay=1.0, jitter_factor=0.0)
        result = await scheduler.with_retry(operation, context, options)

        assert not result.success
        assert result.attempts_made == 2
        assert result.app_error.kind is ErrorKind.NETWORK
        assert result.recovery_strategy is RecoveryStrategy.FAILED
        assert calls[0] == 2
        assert fake_clock.sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_last_error_is_reported(
        self, scheduler: RetryScheduler, context: ErrorContext
    ):
        first, last = TimeoutError("first"), TimeoutError("last")
        operation, _ = failing_then([first, last], result="unreachable")
        options = RetryOptions(max_attempts=2, base_delay=1.0, jitter_factor=0.0)
        result = await scheduler.with_retry(operation, context, options)

        assert result.error is last

    @pytest.mark.asyncio
    async def test_single_attempt_never_retries(
        self, scheduler: RetryScheduler, fake_clock: FakeClock, context: ErrorContext
    ):
        operation, calls = always_failing(lambda: ConnectionRefusedError("refused"))
        result = await scheduler.with_retry(operation, context, RetryOptions(max_attempts=1))

        assert not result.success
        assert result.attempts_made == 1
        assert result.app_error.retryable is True
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_rate_limit_uses_larger_multiplier(
        self, scheduler: RetryScheduler, fake_clock: FakeClock, context: ErrorContext
    ):
        operation, _ = always_failing(lambda: ServiceResponseError(429))
        await scheduler.with_retry(operation, context, NO_JITTER)

        assert fake_clock.sleeps == [1.0, 4.0]

    @pytest.mark.asyncio
    async def test_retry_after_honoured(
        self, scheduler: RetryScheduler, fake_clock: FakeClock, context: ErrorContext
    ):
        operation, _ = failing_then([ServiceResponseError(429, headers={"Retry-After": "7"})])
        result = await scheduler.with_retry(operation, context, NO_JITTER)

        assert result.success
        assert fake_clock.sleeps == [7.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_attempts", [1, 2, 3, 5])
    async def test_attempts_within_bounds(
        self, scheduler: RetryScheduler, context: ErrorContext, max_attempts: int
    ):
        operation, _ = always_failing(lambda: TimeoutError())
        options = RetryOptions(max_attempts=max_attempts, base_delay=0.01, jitter_factor=0.0)
        result = await scheduler.with_retry(operation, context, options)

        assert 1 <= result.attempts_made <= max_attempts
        assert (result.data is None) != (result.error is None)

    @pytest.mark.asyncio
    async def test_default_options(self, scheduler: RetryScheduler, context: ErrorContext):
        operation, calls = always_failing(lambda: TimeoutError())
        result = await scheduler.with_retry(operation, context)

        assert result.attempts_made == 3
        assert calls[0] == 3


class TestRetryCondition:
    """Caller veto through RetryOptions.retry_condition."""

    @pytest.mark.asyncio
    async def test_condition_can_stop_retrying(
        self, scheduler: RetryScheduler, context: ErrorContext
    ):
        operation, calls = always_failing(lambda: ConnectionRefusedError("refused"))
        options = RetryOptions(max_attempts=3, jitter_factor=0.0, retry_condition=lambda e: False)
        result = await scheduler.with_retry(operation, context, options)

        assert result.attempts_made == 1
        assert calls[0] == 1

    @pytest.mark.asyncio
    async def test_condition_cannot_force_retry(
        self, scheduler: RetryScheduler, context: ErrorContext
    ):
        operation, calls = always_failing(lambda: ServiceResponseError(401))
        options = RetryOptions(max_attempts=3, jitter_factor=0.0, retry_condition=lambda e: True)
        result = await scheduler.with_retry(operation, context, options)

        assert result.attempts_made == 1

    @pytest.mark.asyncio
    async def test_failing_condition_stops_retrying(
        self, scheduler: RetryScheduler, context: ErrorContext
    ):
        def broken(exc: BaseException) -> bool:
            raise KeyError("oops")

        operation, _ = always_failing(lambda: TimeoutError())
        options = RetryOptions(max_attempts=3, jitter_factor=0.0, retry_condition=broken)
        result = await scheduler.with_retry(operation, context, options)

        assert not result.success
        assert result.attempts_made == 1


class TestContextPreservation:
    """Snapshot/restore around attempts for with_context_preservation."""

    @staticmethod
    def _preserving(state: dict[str, list[str]]):
        def snapshot() -> list[str]:
            return copy.deepcopy(state["items"])

        def restore(saved: list[str]) -> None:
            state["items"] = saved

        return snapshot, restore

    @pytest.mark.asyncio
    async def test_failed_attempts_never_leak_partial_state(
        self, scheduler: RetryScheduler, context: ErrorContext
    ):
        state = {"items": ["a"]}
        observed: list[list[str]] = []

        async def operation() -> str:
            observed.append(list(state["items"]))
            state["items"].append("partial")
            raise ConnectionRefusedError("refused")

        snapshot, restore = self._preserving(state)
        result = await scheduler.with_context_preservation(
            operation, context, snapshot, restore, NO_JITTER
        )

        assert not result.success
        assert result.attempts_made == 3
        assert observed == [["a"], ["a"], ["a"]]
        assert state == {"items": ["a"]}

    @pytest.mark.asyncio
    async def test_successful_attempt_keeps_its_changes(
        self, scheduler: RetryScheduler, context: ErrorContext
    ):
        state = {"items": ["a"]}
        observed: list[list[str]] = []

        async def operation() -> str:
            observed.append(list(state["items"]))
            if len(observed) == 1:
                state["items"].append("partial")
                raise TimeoutError()
            state["items"].append("sent")
            return "ok"

        snapshot, restore = self._preserving(state)
        result = await scheduler.with_context_preservation(
            operation, context, snapshot, restore, NO_JITTER
        )

        assert result.success
        assert observed == [["a"], ["a"]]
        assert state == {"items": ["a", "sent"]}

    @pytest.mark.asyncio
    async def test_call_order_on_recovery(
        self, scheduler: RetryScheduler, context: ErrorContext
    ):
        calls: list[str] = []
        operation, _ = failing_then([TimeoutError()])

        result = await scheduler.with_context_preservation(
            operation,
            context,
            lambda: calls.append("snapshot") or len(calls),
            lambda saved: calls.append(f"restore:{saved}"),
            NO_JITTER,
        )

        assert result.success
        assert calls == ["snapshot", "restore:1", "snapshot"]

    @pytest.mark.asyncio
    async def test_first_try_success_never_restores(
        self, scheduler: RetryScheduler, context: ErrorContext
    ):
        calls: list[str] = []
        operation, _ = failing_then([])

        result = await scheduler.with_context_preservation(
            operation,
            context,
            lambda: calls.append("snapshot"),
            lambda saved: calls.append("restore"),
            NO_JITTER,
        )

        assert result.success
        assert calls == ["snapshot"]

    @pytest.mark.asyncio
    async def test_restore_after_terminal_failure(
        self, scheduler: RetryScheduler, context: ErrorContext
    ):
        calls: list[str] = []
        operation, _ = always_failing(lambda: TimeoutError())
        options = RetryOptions(max_attempts=2, base_delay=1.0, jitter_factor=0.0)

        result = await scheduler.with_context_preservation(
            operation,
            context,
            lambda: calls.append("snapshot") or len(calls),
            lambda saved: calls.append(f"restore:{saved}"),
            options,
        )

        assert not result.success
        assert calls == ["snapshot", "restore:1", "snapshot", "restore:3"]

    @pytest.mark.asyncio
    async def test_restore_when_cancelled_during_backoff(
        self, fixed_now: datetime, context: ErrorContext
    ):
        clock = FakeClock(fixed_now, block=True)
        scheduler = RetryScheduler(clock=clock)
        state = {"items": ["a"]}

        async def operation() -> str:
            state["items"].append("partial")
            raise TimeoutError()

        snapshot, restore = self._preserving(state)
        task = asyncio.create_task(
            scheduler.with_context_preservation(
                operation, context, snapshot, restore, NO_JITTER
            )
        )
        await clock.sleep_started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert state == {"items": ["a"]}

    @pytest.mark.asyncio
    async def test_restore_failure_propagates(
        self, scheduler: RetryScheduler, context: ErrorContext
    ):
        def restore(saved: object) -> None:
            raise RuntimeError("cannot restore")

        operation, _ = failing_then([TimeoutError()])
        with pytest.raises(RuntimeError, match="cannot restore"):
            await scheduler.with_context_preservation(
                operation, context, lambda: None, restore, NO_JITTER
            )


class TestStateMachine:
    """Explicit scheduler states."""

    @pytest.mark.asyncio
    async def test_transitions_reported(self, scheduler: RetryScheduler, context: ErrorContext):
        transitions: list[tuple[str, str, int]] = []
        operation, _ = failing_then([TimeoutError()])

        await scheduler.with_retry(
            operation,
            context,
            NO_JITTER,
            on_state_change=lambda old, new, attempt: transitions.append(
                (old.value, new.value, attempt)
            ),
        )

        assert transitions == [
            ("idle", "attempting", 1),
            ("attempting", "waiting", 1),
            ("waiting", "attempting", 2),
            ("attempting", "succeeded", 2),
        ]

    @pytest.mark.asyncio
    async def test_failing_hook_does_not_break_sequence(
        self, scheduler: RetryScheduler, context: ErrorContext
    ):
        def hook(old, new, attempt):
            raise RuntimeError("observer bug")

        operation, _ = failing_then([TimeoutError()])
        result = await scheduler.with_retry(operation, context, NO_JITTER, on_state_change=hook)

        assert result.success

    def test_illegal_transition_rejected(self):
        seq = _Sequence(None)
        with pytest.raises(InvalidTransitionError):
            seq.transition(SchedulerState.SUCCEEDED)

    def test_terminal_states(self):
        assert SchedulerState.SUCCEEDED.is_terminal
        assert SchedulerState.FAILED.is_terminal
        assert not SchedulerState.WAITING.is_terminal


class TestNetworkAwareness:
    """Interaction with the network monitor."""

    @pytest.mark.asyncio
    async def test_offline_network_retry_waits_ceiling(
        self, fake_clock: FakeClock, context: ErrorContext
    ):
        monitor = NetworkMonitor(probe=StaticNetworkProbe(online=False), clock=fake_clock)
        scheduler = RetryScheduler(clock=fake_clock, network_monitor=monitor)
        operation, _ = failing_then([ConnectionRefusedError("refused")])

        result = await scheduler.with_retry(operation, context, NO_JITTER)

        assert result.success
        assert fake_clock.sleeps == [30.0]
        monitor.close()


class TestCancellation:
    """Cancellation during backoff."""

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_propagates(self, fixed_now, context: ErrorContext):
        clock = FakeClock(fixed_now, block=True)
        scheduler = RetryScheduler(clock=clock)
        operation, calls = always_failing(lambda: TimeoutError())

        task = asyncio.create_task(scheduler.with_retry(operation, context, NO_JITTER))
        await clock.sleep_started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert calls[0] == 1
