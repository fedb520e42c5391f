"""Connectivity tracking: probes and the shared network monitor."""

from rebound.network.monitor import (
    NetworkListener,
    NetworkMonitor,
    get_network_monitor,
    reset_network_monitor,
    set_network_monitor,
)
from rebound.network.probe import HttpNetworkProbe, NetworkProbe, StaticNetworkProbe

__all__ = [
    "HttpNetworkProbe",
    "NetworkListener",
    "NetworkMonitor",
    "NetworkProbe",
    "StaticNetworkProbe",
    "get_network_monitor",
    "reset_network_monitor",
    "set_network_monitor",
]
