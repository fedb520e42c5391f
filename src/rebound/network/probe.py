"""Network probe implementations.

A probe is the source of connectivity information for a NetworkMonitor.
It exposes a passive signal (``current_status`` / ``subscribe``) fed by
whatever the host environment reports, and an active ``probe`` that
checks reachability on demand.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable
from urllib.parse import urljoin

import httpx

from rebound.core.constants import DEFAULT_HEALTH_PATH
from rebound.core.logging import get_logger

_logger = get_logger("network.probe")

StatusCallback = Callable[[bool], None]


@runtime_checkable
class NetworkProbe(Protocol):
    """Connectivity source consumed by NetworkMonitor."""

    def current_status(self) -> bool:
        """Last passively reported status (True = online)."""
        ...

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """Register for passive status changes; returns an unsubscribe."""
        ...

    async def probe(self, timeout: float) -> bool:
        """Actively check reachability."""
        ...


class StaticNetworkProbe:
    """In-process passive signal source.

    The host application (or a test) calls ``set_status`` when it learns
    about a connectivity change. Subscribers are notified only when the
    status actually changes. The active probe reports the passive status.
    """

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._callbacks: list[StatusCallback] = []

    def current_status(self) -> bool:
        return self._online

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def set_status(self, online: bool) -> None:
        """Report a passive connectivity transition."""
        if online == self._online:
            return
        self._online = online
        for callback in list(self._callbacks):
            callback(online)

    async def probe(self, timeout: float) -> bool:
        return self._online


class HttpNetworkProbe(StaticNetworkProbe):
    """Probe that checks a health endpoint with an HTTP HEAD request.

    The passive signal behaves like StaticNetworkProbe. The active probe
    succeeds only on a 2xx response; any transport failure or timeout
    counts as unreachable.
    """

    def __init__(
        self,
        health_url: str,
        online: bool = True,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(online)
        self.health_url = health_url
        self._client = client

    @classmethod
    def for_base_url(
        cls,
        base_url: str,
        online: bool = True,
        client: httpx.AsyncClient | None = None,
    ) -> HttpNetworkProbe:
        """Build a probe for ``<base_url>/api/health``."""
        return cls(urljoin(base_url, DEFAULT_HEALTH_PATH), online=online, client=client)

    async def probe(self, timeout: float) -> bool:
        headers = {"Cache-Control": "no-cache"}
        try:
            if self._client is not None:
                response = await self._client.head(
                    self.health_url, headers=headers, timeout=timeout
                )
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.head(self.health_url, headers=headers)
        except httpx.HTTPError as e:
            _logger.debug(
                "network.probe_failed",
                url=self.health_url,
                error_type=type(e).__name__,
                error=str(e),
            )
            return False

        _logger.debug(
            "network.probe_completed",
            url=self.health_url,
            status_code=response.status_code,
        )
        return response.is_success
