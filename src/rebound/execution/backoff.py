"""Backoff computation for the retry scheduler.

Exponential backoff with a per-kind multiplier, a fixed ceiling and an
additive full-jitter component:

    delay  = min(base_delay * multiplier ** (attempt - 1), max_delay)
    jitter = uniform(0, delay * jitter_factor)
    wait   = delay + jitter

The multiplier comes from the error kind's policy (network and timeout
x2, rate_limited x4). A server-signalled Retry-After raises the delay to
at least the suggested wait, still bounded by the ceiling.
"""

from __future__ import annotations

import random
from typing import NamedTuple

from rebound.core.constants import BACKOFF_CEILING_SECONDS
from rebound.core.errors import AppError, ErrorKind


class BackoffDelay(NamedTuple):
    """A computed wait, split into its deterministic and random parts.

    Attributes:
        delay: Pre-jitter delay in seconds (bounded by the ceiling).
        jitter: Random component added on top.
    """

    delay: float
    jitter: float

    @property
    def total(self) -> float:
        return self.delay + self.jitter


def compute_backoff(
    attempt: int,
    base_delay: float,
    kind: ErrorKind,
    max_delay: float = BACKOFF_CEILING_SECONDS,
) -> float:
    """Pre-jitter delay after failed attempt number ``attempt``.

    Monotonically non-decreasing in ``attempt`` and never above
    ``max_delay``.

    Args:
        attempt: The attempt that just failed (1-indexed).
        base_delay: Delay after the first failure, in seconds.
        kind: Kind of the failure; selects the multiplier.
        max_delay: Ceiling in seconds.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    multiplier = kind.policy.backoff_multiplier
    exponent = attempt - 1
    # Guard against float overflow for very long sequences
    if exponent > 64:
        return max_delay
    return min(base_delay * (multiplier**exponent), max_delay)


def apply_jitter(
    delay: float,
    jitter_factor: float,
    rng: random.Random | None = None,
) -> float:
    """Random jitter in ``[0, delay * jitter_factor]``.

    Desynchronizes retries from concurrent call sites.
    """
    if jitter_factor <= 0 or delay <= 0:
        return 0.0
    source = rng or random
    return source.uniform(0.0, delay * jitter_factor)


def backoff_for_error(
    error: AppError,
    attempt: int,
    base_delay: float,
    max_delay: float = BACKOFF_CEILING_SECONDS,
    jitter_factor: float = 1.0,
    *,
    offline: bool = False,
    rng: random.Random | None = None,
) -> BackoffDelay:
    """Full wait before retrying ``error``.

    Args:
        error: The classified failure of the attempt that just ended.
        attempt: The attempt that just failed (1-indexed).
        base_delay: Delay after the first failure, in seconds.
        max_delay: Ceiling for the pre-jitter delay.
        jitter_factor: Jitter range as a fraction of the delay.
        offline: Whether the network monitor reports no connectivity; a
            network retry then waits the full ceiling.
        rng: Random source, injectable for deterministic tests.
    """
    delay = compute_backoff(attempt, base_delay, error.kind, max_delay)
    if error.suggested_wait_seconds is not None:
        delay = min(max(delay, error.suggested_wait_seconds), max_delay)
    if offline and error.kind is ErrorKind.NETWORK:
        delay = max_delay
    return BackoffDelay(delay=delay, jitter=apply_jitter(delay, jitter_factor, rng))


def backoff_schedule(
    kind: ErrorKind,
    attempts: int,
    base_delay: float,
    max_delay: float = BACKOFF_CEILING_SECONDS,
) -> list[float]:
    """Pre-jitter delays for each retry of an ``attempts``-long sequence."""
    return [compute_backoff(n, base_delay, kind, max_delay) for n in range(1, attempts)]
