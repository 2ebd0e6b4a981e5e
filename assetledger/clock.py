# assetledger/clock.py
"""
Clocks supplying registration timestamps.

A clock is any zero-argument callable returning integer seconds.
"""

import threading
import time


def system_clock() -> int:
    """Current wall-clock time in whole seconds."""
    return int(time.time())


class FixedClock:
    """
    A clock that only moves when told to.

    Usage:
        clock = FixedClock(100)
        registry = Registry(clock=clock)
        clock.advance(5)  # next registration is stamped 105
    """

    def __init__(self, now: int = 0):
        self._now = int(now)
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            return self._now

    def set(self, now: int) -> None:
        with self._lock:
            self._now = int(now)

    def advance(self, seconds: int = 1) -> int:
        with self._lock:
            self._now += int(seconds)
            return self._now
