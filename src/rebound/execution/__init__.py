"""Retry execution: backoff computation and the retry scheduler."""

from rebound.execution.backoff import (
    BackoffDelay,
    apply_jitter,
    backoff_for_error,
    backoff_schedule,
    compute_backoff,
)
from rebound.execution.retry import RetryScheduler, SchedulerState, StateChangeHook

__all__ = [
    "BackoffDelay",
    "RetryScheduler",
    "SchedulerState",
    "StateChangeHook",
    "apply_jitter",
    "backoff_for_error",
    "backoff_schedule",
    "compute_backoff",
]
