"""Network monitor: shared, observable connectivity state.

The monitor is the single writer of the process-wide online/offline
status. Passive transitions come from its NetworkProbe and are fanned out
synchronously, in registration order, to every listener. Listeners may
register or unregister at any time, including from inside a callback; a
listener removed during a fan-out is not called for that transition.

``test_connectivity`` runs an active probe. A probe result never changes
the passive status; it only updates ``last_tested_at``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime

from rebound.core.clock import Clock, SystemClock
from rebound.core.config import NetworkConfig
from rebound.core.constants import DEFAULT_PROBE_TIMEOUT_SECONDS
from rebound.core.logging import get_logger

from .probe import HttpNetworkProbe, NetworkProbe, StaticNetworkProbe

_logger = get_logger("network")

NetworkListener = Callable[[bool], None]


class NetworkMonitor:
    """Tracks online/offline transitions and runs connectivity probes.

    Attributes:
        probe: The connectivity source.
        probe_timeout: Timeout applied to every active probe (seconds).
    """

    def __init__(
        self,
        probe: NetworkProbe | None = None,
        clock: Clock | None = None,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
    ) -> None:
        self.probe: NetworkProbe = probe or StaticNetworkProbe()
        self.probe_timeout = probe_timeout
        self._clock: Clock = clock or SystemClock()
        self._online = self.probe.current_status()
        self._listeners: list[NetworkListener] = []
        self._last_changed_at: datetime | None = None
        self._last_tested_at: datetime | None = None
        self._probe_task: asyncio.Task[bool] | None = None
        self._unsubscribe_probe: Callable[[], None] | None = self.probe.subscribe(
            self._on_probe_change
        )

    @classmethod
    def from_config(cls, config: NetworkConfig, clock: Clock | None = None) -> NetworkMonitor:
        """Build a monitor; uses an HTTP probe when a health URL is configured."""
        probe: NetworkProbe = (
            HttpNetworkProbe(config.health_url) if config.health_url else StaticNetworkProbe()
        )
        return cls(probe=probe, clock=clock, probe_timeout=config.probe_timeout)

    # -------------------------------------------------------------------------
    # Passive state
    # -------------------------------------------------------------------------

    def is_online(self) -> bool:
        """Last known passive status; no I/O."""
        return self._online

    @property
    def last_changed_at(self) -> datetime | None:
        return self._last_changed_at

    @property
    def last_tested_at(self) -> datetime | None:
        return self._last_tested_at

    @property
    def is_testing_connectivity(self) -> bool:
        return self._probe_task is not None and not self._probe_task.done()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def on_network_change(self, listener: NetworkListener) -> Callable[[], None]:
        """Register a listener for transitions.

        Returns:
            Idempotent function removing the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _on_probe_change(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        self._last_changed_at = self._clock.now()
        _logger.info("network.status_changed", online=online, listeners=len(self._listeners))

        for listener in list(self._listeners):
            if listener not in self._listeners:
                continue
            try:
                listener(online)
            except Exception:
                _logger.warning("network.listener_failed", online=online, exc_info=True)

    # -------------------------------------------------------------------------
    # Active probing
    # -------------------------------------------------------------------------

    async def test_connectivity(self) -> bool:
        """Run an active probe, sharing any probe already in flight.

        Returns:
            True if the probe reached the target within ``probe_timeout``.

        Raises:
            asyncio.CancelledError: If the probe was cancelled via
                ``cancel_probe()`` or teardown; no result is produced.
        """
        if self._probe_task is None or self._probe_task.done():
            self._probe_task = asyncio.ensure_future(self._run_probe())
        return await asyncio.shield(self._probe_task)

    async def _run_probe(self) -> bool:
        try:
            reachable = await asyncio.wait_for(
                self.probe.probe(self.probe_timeout), timeout=self.probe_timeout
            )
        except TimeoutError:
            reachable = False
        self._last_tested_at = self._clock.now()
        _logger.debug(
            "network.connectivity_tested",
            reachable=reachable,
            passive_online=self._online,
        )
        return reachable

    def cancel_probe(self) -> bool:
        """Cancel an in-flight probe. Returns True if one was cancelled."""
        if self._probe_task is None or self._probe_task.done():
            return False
        self._probe_task.cancel()
        return True

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Drop listeners and timestamps and resync with the probe."""
        self.cancel_probe()
        self._listeners.clear()
        self._online = self.probe.current_status()
        self._last_changed_at = None
        self._last_tested_at = None

    def close(self) -> None:
        """Cancel probing and detach from the probe."""
        self.reset()
        if self._unsubscribe_probe is not None:
            self._unsubscribe_probe()
            self._unsubscribe_probe = None


_default_monitor: NetworkMonitor | None = None


def get_network_monitor() -> NetworkMonitor:
    """Process-wide monitor shared by all call sites."""
    global _default_monitor
    if _default_monitor is None:
        _default_monitor = NetworkMonitor()
    return _default_monitor


def set_network_monitor(monitor: NetworkMonitor) -> None:
    """Install the process-wide monitor (e.g. one with an HTTP probe)."""
    global _default_monitor
    if _default_monitor is not None and _default_monitor is not monitor:
        _default_monitor.close()
    _default_monitor = monitor


def reset_network_monitor() -> None:
    """Tear down the process-wide monitor (test harness teardown)."""
    global _default_monitor
    if _default_monitor is not None:
        _default_monitor.close()
    _default_monitor = None
