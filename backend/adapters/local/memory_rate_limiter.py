"""MemoryRateLimiter — fixed-window call budget per key, kept in process memory."""

import time
import threading
from typing import Callable

from ports.rate_limiter import RateLimiterPort


class MemoryRateLimiter(RateLimiterPort):
    """Allow `points` calls per key every `duration` seconds."""

    def __init__(self, points: int = 10, duration: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        self._points = points
        self._duration = duration
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    def _window(self, key: str) -> tuple[float, int]:
        now = self._clock()
        started, used = self._windows.get(key, (now, 0))
        if now - started >= self._duration:
            started, used = now, 0
        return started, used

    def check(self, key: str) -> bool:
        with self._lock:
            started, used = self._window(key)
            if used >= self._points:
                self._windows[key] = (started, used)
                return False
            self._windows[key] = (started, used + 1)
            return True
