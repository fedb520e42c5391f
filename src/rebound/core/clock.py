"""Clock abstraction for time-dependent engine code.

The retry scheduler, network monitor and recovery controller never call
``asyncio.sleep`` or ``datetime.now`` directly; they go through a Clock so
tests can substitute one that advances instantly.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of wall-clock time and cancellable suspension."""

    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend for ``seconds``; must honour task cancellation."""
        ...


class SystemClock:
    """Clock backed by the running event loop."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
