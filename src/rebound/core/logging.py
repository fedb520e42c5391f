"""Structured logging infrastructure for rebound.

Provides structured logging using structlog with recovery-specific
context such as the operation ``action`` and a per-sequence id. Supports
console and JSON output, with optional rotating file output.

Example usage:
    from rebound.core.logging import get_logger, configure_logging, with_context

    # Configure once at startup
    configure_logging(level="DEBUG", format="console")

    # Get a component-specific logger
    logger = get_logger("retry")

    # Log with auto-context
    logger.info("retry.scheduled", attempt=2)

    # Bind context for one retry sequence
    ctx = RecoveryLogContext(action="send_message")
    with with_context(ctx):
        logger.info("retry.attempt_failed")  # Includes action, sequence_id
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Field names whose values should never be logged
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "token",
    "secret",
    "password",
    "credential",
    "cookie",
    "bearer",
    "authorization",
})


@dataclass(frozen=True)
class RecoveryLogContext:
    """Immutable context correlating log entries of one retry sequence.

    Attributes:
        action: Operation name from the ErrorContext.
        sequence_id: Unique id of the retry sequence.
        controller: Name of the controller driving the sequence, if any.
    """

    action: str
    sequence_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    controller: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging (None fields omitted)."""
        result: dict[str, Any] = {
            "action": self.action,
            "sequence_id": self.sequence_id,
        }
        if self.controller is not None:
            result["controller"] = self.controller
        return result


# Task-safe context variable; each asyncio task sees its own value
_current_context: ContextVar[RecoveryLogContext | None] = ContextVar(
    "rebound_context", default=None
)


def get_current_context() -> RecoveryLogContext | None:
    """Get the current RecoveryLogContext if set."""
    return _current_context.get()


@contextmanager
def with_context(ctx: RecoveryLogContext) -> Iterator[RecoveryLogContext]:
    """Set RecoveryLogContext for the duration of a block.

    Args:
        ctx: The context to use for the block.

    Yields:
        The context that was set.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _sanitize_value(key: str, value: Any) -> Any:
    key_lower = key.lower()
    for pattern in SENSITIVE_PATTERNS:
        if pattern in key_lower:
            return "[REDACTED]"
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that redacts sensitive fields, one level deep."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {k: _sanitize_value(k, v) for k, v in value.items()}
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds RecoveryLogContext fields.

    Explicitly bound fields take precedence over context fields.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


class ReboundLogger:
    """Component logger wrapper around structlog.

    The underlying structlog logger is fetched lazily on every call so that
    loggers created at import time respect a later configure_logging().
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> ReboundLogger:
        """Create a new logger with additional bound context."""
        return ReboundLogger(**{**self._context, **context})

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log an exception with traceback; call from an exception handler."""
        self._get_logger().exception(event, **kw)


def _get_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]
    if include_context:
        processors.append(_add_context)
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 10,
    backup_count: int = 3,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure rebound structured logging.

    Call once at application startup. Console output goes to stderr; JSON
    output goes to ``file_path`` when given, otherwise to stdout.

    Args:
        level: Minimum log level to capture.
        format: "json" for structured, "console" for human-readable.
        file_path: Optional rotating log file.
        max_file_size_mb: Maximum log file size before rotation (MB).
        backup_count: Number of rotated log files to keep.
        include_timestamps: Whether to include ISO8601 timestamps.
        include_context: Whether to include RecoveryLogContext fields.

    Raises:
        ValueError: If ``level`` or ``format`` is not recognised.
    """
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        raise ValueError(f"Unknown log level: {level!r}")
    if format not in ("json", "console"):
        raise ValueError(f"Unknown log format: {format!r}")
    log_level = getattr(logging, level)
    handlers: list[logging.Handler] = []

    if file_path is not None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                file_path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
        )
    elif format == "json":
        handlers.append(logging.StreamHandler(sys.stdout))
    else:
        handlers.append(logging.StreamHandler(sys.stderr))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if format == "json"
        else structlog.dev.ConsoleRenderer(colors=file_path is None)
    )

    # cache_logger_on_first_use=False keeps import-time loggers configurable
    structlog.configure(
        processors=_get_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> ReboundLogger:
    """Get a logger for a component.

    Args:
        component: The component name (e.g., "retry", "network").
        **initial_context: Additional context to bind.
    """
    return ReboundLogger(component, **initial_context)


__all__ = [
    "RecoveryLogContext",
    "ReboundLogger",
    "SENSITIVE_PATTERNS",
    "configure_logging",
    "get_current_context",
    "get_logger",
    "with_context",
]
