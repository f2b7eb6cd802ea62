"""Clocks used for quote expiry and deadlines."""

from __future__ import annotations

import math
import threading
import time
from typing import Callable, Protocol


class Clock(Protocol):
    def __call__(self) -> float: ...


class WallClock:
    """
    Unix wall clock that never steps backwards.

    Quote deadlines are on-chain timestamps, so a monotonic counter is not an
    option; instead the last reading is remembered and reused whenever the
    system clock is adjusted backwards.
    """

    def __init__(self, source: Callable[[], float] = time.time) -> None:
        self._source = source
        self._last = 0.0
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            now = self._source()
            if now < self._last:
                return self._last
            self._last = now
            return now


def deadline_after(now: float, ttl_sec: int) -> int:
    """Whole-second deadline no earlier than ``now + ttl_sec``."""
    return math.ceil(now) + ttl_sec
