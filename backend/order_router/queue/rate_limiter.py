"""Rolling-window limiter on job starts."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Callable


class RateLimiter:
    """Allow at most ``max_starts`` starts in any ``duration`` seconds.

    Only the worker's claim loop calls ``wait_for_capacity`` and
    ``record_start``, so they need no lock between them.
    """

    def __init__(
        self,
        max_starts: int,
        duration: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_starts < 1:
            raise ValueError(f"max_starts must be >= 1, got {max_starts}")
        if duration <= 0:
            raise ValueError(f"duration must be positive, got {duration}")
        self._max_starts = max_starts
        self._duration = duration
        self._clock = clock
        self._starts: deque[float] = deque()

    def _evict(self, now: float) -> None:
        cutoff = now - self._duration
        while self._starts and self._starts[0] <= cutoff:
            self._starts.popleft()

    def available(self) -> int:
        """Starts still allowed in the current window."""
        self._evict(self._clock())
        return self._max_starts - len(self._starts)

    def delay(self) -> float:
        """Seconds until one more start is allowed (0 if allowed now)."""
        now = self._clock()
        self._evict(now)
        if len(self._starts) < self._max_starts:
            return 0.0
        return self._starts[0] + self._duration - now

    async def wait_for_capacity(self) -> None:
        while (wait := self.delay()) > 0:
            await asyncio.sleep(wait)

    def record_start(self) -> None:
        self._starts.append(self._clock())
