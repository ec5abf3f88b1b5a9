"""In-memory sliding window rate limiting keyed by client address.

State lives in the limiter instance; the application keeps one instance per
protected endpoint for the lifetime of the process. Counts are neither
persisted nor shared between server instances.
"""

import math
import threading
import time
from collections import deque
from typing import Callable


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` hits per key within ``window_seconds``."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: int = 1000,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if sweep_interval < 1:
            raise ValueError("sweep_interval must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self.sweep_interval = sweep_interval
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()
        self._hits_since_sweep = 0

    def _prune(self, hits: deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        """Drop every key whose hits have all left the window."""
        for key in list(self._hits):
            hits = self._hits[key]
            self._prune(hits, now)
            if not hits:
                del self._hits[key]
        self._hits_since_sweep = 0

    def hit(self, key: str) -> bool:
        """Record a request for ``key``.

        Returns:
            True if the request is within the limit, False if it must be rejected.
            Rejected requests are not recorded.
        """
        with self._lock:
            now = self._clock()
            self._hits_since_sweep += 1
            if self._hits_since_sweep >= self.sweep_interval:
                self._sweep(now)

            hits = self._hits.setdefault(key, deque())
            self._prune(hits, now)
            if len(hits) >= self.max_requests:
                return False
            hits.append(now)
            return True

    def retry_after(self, key: str) -> int:
        """Seconds until ``key`` may make another request (0 if it already can)."""
        with self._lock:
            now = self._clock()
            hits = self._hits.get(key)
            if hits is None:
                return 0
            self._prune(hits, now)
            if not hits:
                del self._hits[key]
                return 0
            if len(hits) < self.max_requests:
                return 0
            return max(1, math.ceil(hits[0] + self.window_seconds - now))

    def reset(self, key: str | None = None) -> None:
        """Forget recorded hits for one key, or for every key."""
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)

    def __len__(self) -> int:
        """Number of keys currently tracked."""
        return len(self._hits)
