"""Pytest fixtures for rebound tests."""

import logging
from collections.abc import Generator
from datetime import UTC, datetime

import pytest
import structlog

from rebound.core.errors import ErrorContext
from rebound.network import NetworkMonitor, StaticNetworkProbe, reset_network_monitor

from tests.helpers import FakeClock


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging and CLI state before and after each test.

    This ensures test isolation for logging configuration.
    """
    import rebound.cli.helpers as cli_helpers

    cli_helpers.reset_cli_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    cli_helpers.reset_cli_state()
    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture(autouse=True)
def reset_shared_monitor() -> Generator[None, None, None]:
    """Tear down the process-wide network monitor after each test."""
    yield
    reset_network_monitor()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2025, 3, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def fake_clock(fixed_now: datetime) -> FakeClock:
    """Clock that records sleeps and never actually waits."""
    return FakeClock(fixed_now)


@pytest.fixture
def context(fixed_now: datetime) -> ErrorContext:
    return ErrorContext(action="send_message", timestamp=fixed_now, url="app://test")


@pytest.fixture
def static_probe() -> StaticNetworkProbe:
    return StaticNetworkProbe(online=True)


@pytest.fixture
def monitor(static_probe: StaticNetworkProbe, fake_clock: FakeClock) -> Generator[NetworkMonitor, None, None]:
    """Monitor driven by an in-process probe."""
    network_monitor = NetworkMonitor(probe=static_probe, clock=fake_clock)
    yield network_monitor
    network_monitor.close()
