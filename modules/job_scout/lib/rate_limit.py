"""
Leaky-bucket pacing for calls against a shared per-caller quota.

The bucket drains one call every `interval_s` seconds and holds one call, so
the first `acquire()` passes immediately and every later one blocks until the
interval has elapsed since the previous call was released.
"""

from __future__ import annotations

import time
from collections.abc import Callable


class IntervalLimiter:
    def __init__(
        self,
        interval_s: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if interval_s < 0:
            raise ValueError("interval_s must be >= 0")
        self.interval_s = float(interval_s)
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None
        self.waited_s = 0.0

    @classmethod
    def per_minute(cls, calls: float, **kwargs) -> IntervalLimiter:
        """Build a limiter from a calls-per-minute quota."""
        if calls <= 0:
            raise ValueError("calls must be > 0")
        return cls(60.0 / calls, **kwargs)

    def wait_time(self) -> float:
        """Seconds the next acquire() would block for."""
        if self._last is None:
            return 0.0
        return max(0.0, self._last + self.interval_s - self._clock())

    def acquire(self) -> float:
        """Block until a call may be made; return the seconds slept."""
        delay = self.wait_time()
        if delay > 0:
            self._sleep(delay)
            self.waited_s += delay
        self._last = self._clock()
        return delay
