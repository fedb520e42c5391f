"""Retry scheduler: bounded, classified retries with backoff.

Runs an async operation, classifies each failure, and decides whether to
try again. Each sequence is an explicit state machine:

    idle -> attempting -> succeeded
                       -> failed
                       -> waiting -> attempting

Suspension happens only while awaiting the operation and during the
backoff wait; both honour task cancellation. A cancelled sequence
produces no result: ``asyncio.CancelledError`` propagates to the caller.

Example usage:
    scheduler = RetryScheduler()
    result = await scheduler.with_retry(
        send_message,
        ErrorContext(action="send_message"),
        RetryOptions(max_attempts=3, base_delay=1.0),
    )
    if not result.success:
        notify(result.app_error)
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from rebound.core.clock import Clock, SystemClock
from rebound.core.errors import (
    AppError,
    ErrorClassifier,
    ErrorContext,
    RecoveryResult,
    RetryOptions,
)
from rebound.core.exceptions import InvalidTransitionError
from rebound.core.logging import RecoveryLogContext, get_logger, with_context

from .backoff import backoff_for_error

if TYPE_CHECKING:
    from rebound.network.monitor import NetworkMonitor

_logger = get_logger("retry")

T = TypeVar("T")
S = TypeVar("S")

Operation = Callable[[], Awaitable[T]]


class SchedulerState(str, Enum):
    """States of one retry sequence."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SchedulerState.SUCCEEDED, SchedulerState.FAILED)


_TRANSITIONS: dict[SchedulerState, frozenset[SchedulerState]] = {
    SchedulerState.IDLE: frozenset({SchedulerState.ATTEMPTING}),
    SchedulerState.ATTEMPTING: frozenset({
        SchedulerState.SUCCEEDED,
        SchedulerState.FAILED,
        SchedulerState.WAITING,
    }),
    SchedulerState.WAITING: frozenset({SchedulerState.ATTEMPTING}),
    SchedulerState.SUCCEEDED: frozenset(),
    SchedulerState.FAILED: frozenset(),
}

# (old_state, new_state, attempt) -> None
StateChangeHook = Callable[[SchedulerState, SchedulerState, int], None]


# (snapshot, restore)
Preservation = tuple[Callable[[], Any], Callable[[Any], Any]]


def _restore(preservation: Preservation | None, saved: Any) -> None:
    if preservation is not None:
        preservation[1](saved)


class _Sequence:
    """State holder for a single retry sequence."""

    def __init__(self, hook: StateChangeHook | None) -> None:
        self.state = SchedulerState.IDLE
        self.attempt = 0
        self._hook = hook

    def transition(self, new_state: SchedulerState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Illegal scheduler transition {self.state.value} -> {new_state.value}"
            )
        old_state, self.state = self.state, new_state
        if self._hook is None:
            return
        try:
            self._hook(old_state, new_state, self.attempt)
        except Exception:
            _logger.warning(
                "retry.state_hook_failed",
                old_state=old_state.value,
                new_state=new_state.value,
                exc_info=True,
            )


class RetryScheduler:
    """Executes operations with classified, bounded retries.

    The scheduler holds no per-sequence state between calls, so one
    instance can serve many independent call sites.

    Attributes:
        classifier: Classifies raw failures.
        clock: Source of backoff suspension.
        network_monitor: Optional connectivity source; while it reports
            offline, network retries wait the full backoff ceiling.
    """

    def __init__(
        self,
        classifier: ErrorClassifier | None = None,
        clock: Clock | None = None,
        network_monitor: NetworkMonitor | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.classifier = classifier or ErrorClassifier()
        self.clock: Clock = clock or SystemClock()
        self.network_monitor = network_monitor
        self._rng = rng

    async def with_retry(
        self,
        operation: Operation[T],
        context: ErrorContext,
        options: RetryOptions | None = None,
        *,
        on_state_change: StateChangeHook | None = None,
    ) -> RecoveryResult[T]:
        """Run ``operation`` until it succeeds or retrying stops.

        Args:
            operation: Zero-argument async callable.
            context: Provenance attached to every classification.
            options: Retry tuning; defaults to ``RetryOptions()``.
            on_state_change: Optional observer of state transitions.

        Returns:
            RecoveryResult with ``attempts_made`` in ``[1, max_attempts]``.
        """
        return await self._run(operation, context, options or RetryOptions(), None, on_state_change)

    async def with_context_preservation(
        self,
        operation: Operation[T],
        context: ErrorContext,
        snapshot: Callable[[], S],
        restore: Callable[[S], Any],
        options: RetryOptions | None = None,
        *,
        on_state_change: StateChangeHook | None = None,
    ) -> RecoveryResult[T]:
        """Like ``with_retry``, preserving caller state across attempts.

        ``snapshot()`` is called right before every attempt. When an
        attempt fails, ``restore()`` receives the snapshot taken before
        it: immediately before the next attempt, or before returning the
        failed result, or before a cancellation propagates. No attempt
        ever observes state a failed attempt partly mutated, and a failed
        sequence leaves the caller's state as it was. Exceptions raised
        by ``snapshot`` or ``restore`` propagate, since state can no
        longer be guaranteed.
        """
        return await self._run(
            operation,
            context,
            options or RetryOptions(),
            (snapshot, restore),
            on_state_change,
        )

    async def _run(
        self,
        operation: Operation[T],
        context: ErrorContext,
        options: RetryOptions,
        preservation: Preservation | None,
        on_state_change: StateChangeHook | None,
    ) -> RecoveryResult[T]:
        seq = _Sequence(on_state_change)

        with with_context(RecoveryLogContext(action=context.action)):
            while True:
                seq.attempt += 1
                seq.transition(SchedulerState.ATTEMPTING)
                _logger.debug(
                    "retry.attempt_started",
                    attempt=seq.attempt,
                    max_attempts=options.max_attempts,
                )

                saved = preservation[0]() if preservation is not None else None
                try:
                    data = await operation()
                except asyncio.CancelledError:
                    _restore(preservation, saved)
                    raise
                except Exception as exc:
                    error = self.classifier.classify(exc, context)
                    if not self._should_retry(exc, error, seq.attempt, options):
                        _restore(preservation, saved)
                        seq.transition(SchedulerState.FAILED)
                        _logger.warning(
                            "retry.sequence_failed",
                            attempts_made=seq.attempt,
                            kind=error.kind.value,
                            error_code=error.code.value,
                            retryable=error.retryable,
                            message=error.original_message,
                        )
                        return RecoveryResult.failed(exc, error, seq.attempt)

                    wait = backoff_for_error(
                        error,
                        seq.attempt,
                        options.base_delay,
                        options.max_delay,
                        options.jitter_factor,
                        offline=self._is_offline(),
                        rng=self._rng,
                    )

                    seq.transition(SchedulerState.WAITING)
                    _logger.info(
                        "retry.scheduled",
                        attempt=seq.attempt,
                        next_attempt=seq.attempt + 1,
                        kind=error.kind.value,
                        delay_seconds=round(wait.delay, 3),
                        jitter_seconds=round(wait.jitter, 3),
                    )
                    try:
                        await self.clock.sleep(wait.total)
                    finally:
                        _restore(preservation, saved)
                    continue

                seq.transition(SchedulerState.SUCCEEDED)
                if seq.attempt > 1:
                    _logger.info("retry.recovered", attempts_made=seq.attempt)
                return RecoveryResult.succeeded(data, seq.attempt)

    def _should_retry(
        self,
        exc: Exception,
        error: AppError,
        attempt: int,
        options: RetryOptions,
    ) -> bool:
        if not ErrorClassifier.is_retryable(error) or attempt >= options.max_attempts:
            return False
        if options.retry_condition is None:
            return True
        try:
            return bool(options.retry_condition(exc))
        except Exception:
            _logger.warning("retry.condition_failed", attempt=attempt, exc_info=True)
            return False

    def _is_offline(self) -> bool:
        return self.network_monitor is not None and not self.network_monitor.is_online()
