"""Recovery controller and its observable status."""

from rebound.recovery.controller import (
    BusyPolicy,
    ErrorCallback,
    RecoveryCallback,
    RecoveryController,
    RecoveryStatus,
    StatusListener,
)

__all__ = [
    "BusyPolicy",
    "ErrorCallback",
    "RecoveryCallback",
    "RecoveryController",
    "RecoveryStatus",
    "StatusListener",
]
