"""Shared test helpers for rebound tests."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timedelta
from typing import Any


class FakeClock:
    """Clock whose sleeps return immediately and are recorded.

    ``now()`` advances by each requested sleep so timestamps stay ordered.
    Set ``block=True`` to make ``sleep`` wait on an event instead, which
    lets tests cancel a sequence while it is suspended in backoff.
    """

    def __init__(self, start: datetime, *, block: bool = False) -> None:
        self._now = start
        self.sleeps: list[float] = []
        self.block = block
        self.sleep_started = asyncio.Event()
        self.release = asyncio.Event()

    def now(self) -> datetime:
        return self._now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._now += timedelta(seconds=seconds)
        if self.block:
            self.sleep_started.set()
            await self.release.wait()
        else:
            await asyncio.sleep(0)


class FixedRandom:
    """random.Random stand-in whose uniform() returns a fixed fraction."""

    def __init__(self, fraction: float = 0.0) -> None:
        self.fraction = fraction

    def uniform(self, a: float, b: float) -> float:
        return a + (b - a) * self.fraction


def failing_then(
    failures: Sequence[BaseException],
    result: Any = "ok",
) -> tuple[Callable[[], Awaitable[Any]], list[int]]:
    """Build an operation that raises ``failures`` in order, then returns ``result``.

    Returns the operation and a one-element list holding the call count.
    """
    calls = [0]

    async def operation() -> Any:
        calls[0] += 1
        if calls[0] <= len(failures):
            raise failures[calls[0] - 1]
        return result

    return operation, calls


def always_failing(exc_factory: Callable[[], BaseException]) -> tuple[Callable[[], Awaitable[Any]], list[int]]:
    """Build an operation that always raises a fresh exception."""
    calls = [0]

    async def operation() -> Any:
        calls[0] += 1
        raise exc_factory()

    return operation, calls
