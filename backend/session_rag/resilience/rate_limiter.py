"""Sliding-window rate limiter for outbound provider calls."""

import math
import time
from collections import deque
from threading import Lock
from typing import Callable

from session_rag.core.errors import RateLimitExceededError


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` calls per trailing ``window_seconds``.

    Rejects instead of queueing: ``check()`` either records the call or
    raises ``RateLimitExceededError`` with the wait the caller would need.
    Call times live in a ring buffer of ``max_requests`` slots, so memory
    stays constant however long the process runs. Safe to share across
    threads and concurrent tasks.
    """

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._calls: deque[float] = deque(maxlen=max_requests)
        self._lock = Lock()

    def check(self) -> None:
        """Record a call, or raise if the window is already full.

        Raises:
            RateLimitExceededError: With ``retry_after`` in seconds.
        """
        with self._lock:
            now = self._clock()
            self._prune(now)

            if len(self._calls) >= self.max_requests:
                retry_after = self.window_seconds - (now - self._calls[0])
                raise RateLimitExceededError(
                    f"Rate limit exceeded. Maximum {self.max_requests} requests per "
                    f"{self.window_seconds:g}s. Please retry after "
                    f"{math.ceil(retry_after)} seconds.",
                    retry_after=retry_after,
                )

            self._calls.append(now)

    def remaining(self) -> int:
        """Calls still allowed in the current window."""
        with self._lock:
            self._prune(self._clock())
            return max(0, self.max_requests - len(self._calls))

    def reset(self) -> None:
        """Forget all recorded calls."""
        with self._lock:
            self._calls.clear()

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.window_seconds:
            self._calls.popleft()
