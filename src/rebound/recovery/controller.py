"""Recovery controller: the facade call sites use.

Wraps the retry scheduler with observable status, completes partial
contexts, forwards terminal outcomes to the ``on_error`` / ``on_recovery``
callbacks and offers a manual retry.

At most one retry sequence per controller is in flight. A second call
while busy either raises ``RecoveryInProgressError`` (``busy_policy =
"reject"``) or waits for the first to finish (``"queue"``).

Example usage:
    controller = RecoveryController(on_error=show_banner)
    result = await controller.execute_with_error_handling(
        send_message, "send_message", conversation_id=conv_id
    )
    if not result.success:
        print(controller.get_error_message())
"""

from __future__ import annotations

import asyncio
import platform
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Literal, TypeVar

from rebound import __version__
from rebound.core.clock import Clock, SystemClock
from rebound.core.config import ReboundConfig, RetryConfig
from rebound.core.constants import DEFAULT_CONTEXT_URL
from rebound.core.errors import (
    AppError,
    ErrorContext,
    RecoveryResult,
    RecoveryStrategy,
    RetryOptions,
    Severity,
)
from rebound.core.exceptions import RecoveryCancelledError, RecoveryInProgressError
from rebound.core.logging import get_logger
from rebound.execution import RetryScheduler, SchedulerState, backoff_for_error
from rebound.network import NetworkMonitor, get_network_monitor
from rebound.notifications import get_recovery_suggestions, get_user_message

_logger = get_logger("recovery")

T = TypeVar("T")

BusyPolicy = Literal["reject", "queue"]
ErrorCallback = Callable[[AppError], None]
RecoveryCallback = Callable[[RecoveryResult[Any]], None]


@dataclass(frozen=True)
class RecoveryStatus:
    """Observable state of a RecoveryController.

    Attributes:
        error: The stored classified error, if any.
        is_retrying: Whether a sequence is in flight.
        attempts_made: Attempts of the current or last failed sequence.
        is_online: Mirrors the network monitor (True when detection is off).
        last_recovery_attempt: When the last sequence ended.
        state: Scheduler state of the current sequence.
    """

    error: AppError | None = None
    is_retrying: bool = False
    attempts_made: int = 0
    is_online: bool = True
    last_recovery_attempt: datetime | None = None
    state: SchedulerState = SchedulerState.IDLE


StatusListener = Callable[[RecoveryStatus], None]


class RecoveryController:
    """Tracks recovery status for one logical operation stream.

    Attributes:
        retry: Default retry tuning; per-call overrides are merged on top.
        scheduler: Retry scheduler used for every sequence.
        busy_policy: What a second call does while a sequence is in flight.
        name: Label bound to every log line of this controller.
    """

    def __init__(
        self,
        retry: RetryConfig | None = None,
        *,
        scheduler: RetryScheduler | None = None,
        monitor: NetworkMonitor | None = None,
        clock: Clock | None = None,
        on_error: ErrorCallback | None = None,
        on_recovery: RecoveryCallback | None = None,
        enable_network_detection: bool = True,
        busy_policy: BusyPolicy = "reject",
        default_url: str = DEFAULT_CONTEXT_URL,
        client_name: str = "rebound",
        name: str = "default",
    ) -> None:
        self.retry = retry or RetryConfig()
        self.busy_policy = busy_policy
        self.default_url = default_url
        self.name = name
        self.on_error = on_error
        self.on_recovery = on_recovery

        self._clock: Clock = clock or SystemClock()
        self._monitor: NetworkMonitor | None = None
        self._unsubscribe_network: Callable[[], None] | None = None
        if enable_network_detection:
            self._monitor = monitor or get_network_monitor()
            self._unsubscribe_network = self._monitor.on_network_change(
                self._on_network_change
            )

        self.scheduler = scheduler or RetryScheduler(
            clock=self._clock, network_monitor=self._monitor
        )
        self._user_agent = f"{client_name}/{__version__} python/{platform.python_version()}"

        self._status = self._initial_status()
        self._listeners: list[StatusListener] = []
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[Any] | None = None
        self._cancel_requested = False
        self._last_operation: Callable[[], Awaitable[Any]] | None = None
        self._log = _logger.bind(controller=name)

    @classmethod
    def from_config(cls, config: ReboundConfig, **kwargs: Any) -> RecoveryController:
        """Build a controller from a loaded ReboundConfig.

        Keyword arguments (callbacks, clock, monitor, ...) are passed
        through unchanged.
        """
        return cls(
            config.retry,
            enable_network_detection=config.network.enabled,
            busy_policy=config.controller.busy_policy,
            default_url=config.controller.default_url,
            client_name=config.controller.client_name,
            **kwargs,
        )

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    @property
    def status(self) -> RecoveryStatus:
        return self._status

    @property
    def error(self) -> AppError | None:
        return self._status.error

    @property
    def has_error(self) -> bool:
        return self._status.error is not None

    @property
    def is_retryable(self) -> bool:
        return self._status.error is not None and self._status.error.retryable

    @property
    def can_retry(self) -> bool:
        return self.is_retryable and self._status.attempts_made < self.retry.max_retries

    @property
    def should_show_retry(self) -> bool:
        return self.is_retryable and not self._status.is_retrying

    @property
    def is_recoverable(self) -> bool:
        return self._status.error is not None and self._status.error.recoverable

    @property
    def error_severity(self) -> Severity:
        if self._status.error is None:
            return Severity.LOW
        return self._status.error.severity

    def get_error_message(self) -> str | None:
        if self._status.error is None:
            return None
        return get_user_message(self._status.error)

    def get_recovery_suggestions(self) -> list[str]:
        if self._status.error is None:
            return []
        return get_recovery_suggestions(self._status.error)

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Receive every new RecoveryStatus; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _initial_status(self) -> RecoveryStatus:
        online = self._monitor.is_online() if self._monitor is not None else True
        return RecoveryStatus(is_online=online)

    def _set_status(self, status: RecoveryStatus) -> None:
        if status == self._status:
            return
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                self._log.warning("recovery.status_listener_failed", exc_info=True)

    def _update(self, **changes: Any) -> None:
        self._set_status(replace(self._status, **changes))

    def _on_network_change(self, online: bool) -> None:
        self._update(is_online=online)

    def _on_state_change(self, old: SchedulerState, new: SchedulerState, attempt: int) -> None:
        if new is SchedulerState.ATTEMPTING:
            self._update(state=new, attempts_made=attempt)
        else:
            self._update(state=new)

    # -------------------------------------------------------------------------
    # Context
    # -------------------------------------------------------------------------

    def build_context(self, action: str, **overrides: Any) -> ErrorContext:
        """Complete a call-site context with defaults.

        Fills the timestamp, url and client fingerprint; ``action`` must
        come from the caller.
        """
        fields: dict[str, Any] = {
            "timestamp": self._clock.now(),
            "url": self.default_url,
            "user_agent": self._user_agent,
        }
        fields.update({k: v for k, v in overrides.items() if v is not None})
        return ErrorContext(action=action, **fields)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def handle_error(self, exc: BaseException, action: str, **context: Any) -> AppError:
        """Classify ``exc`` and store it as the current error.

        No recovery is attempted. ``on_error`` is invoked with the result.
        """
        app_error = self.scheduler.classifier.classify(exc, self.build_context(action, **context))
        self._store_error(app_error)
        return app_error

    def capture_component_error(
        self,
        exc: BaseException,
        component: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> AppError:
        """Record a failure raised while a component was handling work."""
        additional: dict[str, Any] = dict(extra or {})
        if component is not None:
            additional.setdefault("component", component)
        return self.handle_error(exc, "component_error", additional_data=additional)

    def _store_error(self, app_error: AppError) -> None:
        self._update(
            error=app_error,
            is_retrying=False,
            attempts_made=0,
            last_recovery_attempt=None,
            state=SchedulerState.IDLE,
        )
        self._log.info(
            "recovery.error_captured",
            action=app_error.context.action,
            kind=app_error.kind.value,
            error_code=app_error.code.value,
        )
        self._invoke_callback(self.on_error, app_error)

    async def execute_with_error_handling(
        self,
        operation: Callable[[], Awaitable[T]],
        action: str,
        *,
        retry_overrides: Mapping[str, Any] | None = None,
        **context: Any,
    ) -> RecoveryResult[T]:
        """Run ``operation`` through the retry scheduler.

        Args:
            operation: Zero-argument async callable.
            action: Operation name recorded on the ErrorContext.
            retry_overrides: RetryOptions fields overriding the defaults.
            **context: ErrorContext fields overriding the defaults.

        Raises:
            RecoveryInProgressError: Busy with ``busy_policy="reject"``.
            RecoveryCancelledError: ``clear_error()`` or ``close()`` cancelled
                the sequence.
        """
        error_context = self.build_context(action, **context)
        options = self._options(retry_overrides)

        def sequence() -> Awaitable[RecoveryResult[T]]:
            return self.scheduler.with_retry(
                operation, error_context, options, on_state_change=self._on_state_change
            )

        return await self._run(sequence, operation, action)

    async def execute_with_context_preservation(
        self,
        operation: Callable[[], Awaitable[T]],
        snapshot: Callable[[], Any],
        restore: Callable[[Any], Any],
        action: str,
        *,
        retry_overrides: Mapping[str, Any] | None = None,
        **context: Any,
    ) -> RecoveryResult[T]:
        """Same as ``execute_with_error_handling`` with state preservation."""
        error_context = self.build_context(action, **context)
        options = self._options(retry_overrides)

        def sequence() -> Awaitable[RecoveryResult[T]]:
            return self.scheduler.with_context_preservation(
                operation,
                error_context,
                snapshot,
                restore,
                options,
                on_state_change=self._on_state_change,
            )

        return await self._run(sequence, operation, action)

    async def handle_retry(
        self,
        operation: Callable[[], Awaitable[T]] | None = None,
    ) -> RecoveryResult[T] | None:
        """Manually schedule one more attempt for the stored error.

        Only retryable errors are retried, and only while ``can_retry``
        holds, so ``attempts_made`` never exceeds ``retry.max_retries``.
        The wait is computed from the current ``attempts_made`` rather
        than restarting at the first delay. ``operation`` defaults to the
        last operation the controller ran.

        Returns:
            The outcome of the single attempt, or None when nothing was
            scheduled.
        """
        error = self._status.error
        if error is None or not error.retryable:
            self._log.debug(
                "recovery.manual_retry_skipped",
                reason="no_error" if error is None else "not_retryable",
            )
            return None
        if not self.can_retry:
            self._log.debug(
                "recovery.manual_retry_skipped",
                reason="attempts_exhausted",
                attempts_made=self._status.attempts_made,
                max_retries=self.retry.max_retries,
            )
            return None
        target = operation or self._last_operation
        if target is None:
            self._log.debug("recovery.manual_retry_skipped", reason="no_operation")
            return None

        attempts = self._status.attempts_made
        context = replace(error.context, timestamp=self._clock.now())
        options = self._options(None)
        wait = backoff_for_error(
            error,
            max(attempts, 1),
            options.base_delay,
            options.max_delay,
            options.jitter_factor,
            offline=self._monitor is not None and not self._monitor.is_online(),
        )

        async def sequence() -> RecoveryResult[T]:
            self._log.info(
                "recovery.manual_retry_scheduled",
                action=context.action,
                attempt=attempts + 1,
                delay_seconds=round(wait.total, 3),
            )
            self._update(state=SchedulerState.WAITING)
            await self._clock.sleep(wait.total)
            self._update(state=SchedulerState.ATTEMPTING, attempts_made=attempts + 1)
            single = await self.scheduler.with_retry(
                target, context, replace(options, max_attempts=1)
            )
            if single.success:
                return replace(
                    single,
                    attempts_made=attempts + 1,
                    recovery_strategy=RecoveryStrategy.RETRY,
                )
            return replace(single, attempts_made=attempts + 1)

        return await self._run(sequence, target, context.action)

    def _options(self, overrides: Mapping[str, Any] | None) -> RetryOptions:
        return self.retry.to_options().merged(**dict(overrides or {}))

    async def _run(
        self,
        sequence: Callable[[], Awaitable[RecoveryResult[T]]],
        operation: Callable[[], Awaitable[Any]],
        action: str,
    ) -> RecoveryResult[T]:
        if self._lock.locked() and self.busy_policy == "reject":
            raise RecoveryInProgressError(
                f"Controller '{self.name}' already has a recovery sequence in flight"
            )

        async with self._lock:
            self._cancel_requested = False
            self._last_operation = operation
            self._update(is_retrying=True, state=SchedulerState.IDLE)
            self._log.debug("recovery.sequence_started", action=action)

            task = asyncio.ensure_future(sequence())
            self._task = task
            try:
                result = await task
            except asyncio.CancelledError:
                if self._cancel_requested and task.cancelled():
                    raise self._cancelled(action) from None
                self._update(is_retrying=False)
                raise
            finally:
                self._task = None

            # clear_error() can land after the task finished but before this resumes
            if self._cancel_requested:
                raise self._cancelled(action)

            self._finish(result)
            return result

    def _cancelled(self, action: str) -> RecoveryCancelledError:
        self._log.info("recovery.cancelled", action=action)
        return RecoveryCancelledError(f"Recovery of '{action}' was cancelled")

    def _finish(self, result: RecoveryResult[Any]) -> None:
        now = self._clock.now()
        if result.success:
            self._set_status(
                replace(self._initial_status(), last_recovery_attempt=now)
            )
            self._log.info(
                "recovery.succeeded",
                attempts_made=result.attempts_made,
                strategy=result.recovery_strategy.value,
            )
        else:
            self._update(
                error=result.app_error,
                is_retrying=False,
                attempts_made=result.attempts_made,
                last_recovery_attempt=now,
                state=SchedulerState.FAILED,
            )
            self._log.warning(
                "recovery.failed",
                attempts_made=result.attempts_made,
                kind=result.app_error.kind.value if result.app_error else None,
            )
            if result.app_error is not None:
                self._invoke_callback(self.on_error, result.app_error)
        self._invoke_callback(self.on_recovery, result)

    def _invoke_callback(self, callback: Callable[[Any], Any] | None, arg: Any) -> None:
        if callback is None:
            return
        try:
            callback(arg)
        except Exception:
            self._log.warning(
                "recovery.callback_failed",
                callback=getattr(callback, "__name__", repr(callback)),
                exc_info=True,
            )

    # -------------------------------------------------------------------------
    # Reset and teardown
    # -------------------------------------------------------------------------

    def clear_error(self) -> None:
        """Reset status to its initial values and cancel pending work.

        Idempotent. A cancelled sequence produces no result and fires no
        callback; its caller receives RecoveryCancelledError. This holds
        even when the sequence already finished but its result has not
        been applied yet.
        """
        if self._task is not None:
            self._cancel_requested = True
            if not self._task.done():
                self._task.cancel()
        self._set_status(self._initial_status())

    def close(self) -> None:
        """Cancel pending work and detach from the network monitor."""
        self.clear_error()
        if self._unsubscribe_network is not None:
            self._unsubscribe_network()
            self._unsubscribe_network = None
        self._listeners.clear()
