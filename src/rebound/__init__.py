"""Rebound - error classification and recovery for async operations."""

__version__ = "0.1.0"

from rebound.core.clock import Clock, SystemClock
from rebound.core.errors import (
    AppError,
    ErrorClassifier,
    ErrorCode,
    ErrorContext,
    ErrorKind,
    RecoveryResult,
    RecoveryStrategy,
    RetryOptions,
    Severity,
    classify,
)
from rebound.core.exceptions import (
    ConfigError,
    InvalidTransitionError,
    ReboundError,
    RecoveryCancelledError,
    RecoveryInProgressError,
    ServiceResponseError,
)
from rebound.execution import RetryScheduler, SchedulerState
from rebound.network import (
    HttpNetworkProbe,
    NetworkMonitor,
    StaticNetworkProbe,
    get_network_monitor,
)
from rebound.notifications import get_recovery_suggestions, get_user_message
from rebound.recovery import RecoveryController, RecoveryStatus

__all__ = [
    "AppError",
    "Clock",
    "ConfigError",
    "ErrorClassifier",
    "ErrorCode",
    "ErrorContext",
    "ErrorKind",
    "HttpNetworkProbe",
    "InvalidTransitionError",
    "NetworkMonitor",
    "ReboundError",
    "RecoveryCancelledError",
    "RecoveryController",
    "RecoveryInProgressError",
    "RecoveryResult",
    "RecoveryStatus",
    "RecoveryStrategy",
    "RetryOptions",
    "RetryScheduler",
    "SchedulerState",
    "ServiceResponseError",
    "Severity",
    "StaticNetworkProbe",
    "SystemClock",
    "__version__",
    "classify",
    "get_network_monitor",
    "get_recovery_suggestions",
    "get_user_message",
]
