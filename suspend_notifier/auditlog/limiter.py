"""Token bucket used to throttle audit stream reconnects."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

# Absorbs float drift after sleeping exactly the computed refill delay.
_EPSILON = 1e-9


class TokenBucket:
    """Allows ``burst`` immediate acquisitions, then one per ``interval`` seconds.

    ``acquire`` blocks the caller until a token is available; it never
    spawns work of its own. Clock and sleep are injectable for tests.
    """

    def __init__(
        self,
        burst: int = 3,
        interval: float = 15.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if burst < 1:
            raise ValueError(f"burst must be at least 1, got {burst}")
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._burst = burst
        self._interval = interval
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._last = clock()

    @property
    def tokens(self) -> float:
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last
        if elapsed > 0:
            self._tokens = min(float(self._burst), self._tokens + elapsed / self._interval)
        self._last = now

    def try_acquire(self) -> bool:
        """Take a token if one is available without waiting."""
        self._refill()
        if self._tokens + _EPSILON >= 1.0:
            self._tokens = max(0.0, self._tokens - 1.0)
            return True
        return False

    async def acquire(self) -> float:
        """Wait for and take a token. Returns the number of seconds waited."""
        waited = 0.0
        while not self.try_acquire():
            delay = (1.0 - self._tokens) * self._interval
            await self._sleep(delay)
            waited += delay
        return waited
