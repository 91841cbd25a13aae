"""In-memory sliding window throttle for the login endpoint."""

from __future__ import annotations

import math
import time
from collections import deque
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Deque, DefaultDict, Protocol


@dataclass(frozen=True, slots=True)
class ThrottleDecision:
    """Outcome of a throttle check; ``retry_after`` is whole seconds."""

    allowed: bool
    retry_after: int = 0


class LoginThrottle(Protocol):
    def check(self, key: str) -> ThrottleDecision: ...


class SlidingWindowRateLimiter:
    """Thread-safe sliding window limiter keyed by caller identity."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialise limiter parameters and per-key storage."""
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._events: DefaultDict[str, Deque[float]] = DefaultDict(deque)
        self._lock = Lock()
        self._last_sweep = clock()

    def check(self, key: str) -> ThrottleDecision:
        """Record an attempt for ``key`` unless it would exceed the window budget."""
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self._window:
                self._evict_idle(now)
            queue = self._events[key]
            while queue and now - queue[0] >= self._window:
                queue.popleft()
            if len(queue) >= self._max_requests:
                retry_after = math.ceil(self._window - (now - queue[0]))
                return ThrottleDecision(False, max(retry_after, 1))
            queue.append(now)
            return ThrottleDecision(True)

    def _evict_idle(self, now: float) -> None:
        """Drop keys whose newest attempt has left the window. Caller holds the lock."""
        idle = [
            key
            for key, queue in self._events.items()
            if not queue or now - queue[-1] >= self._window
        ]
        for key in idle:
            del self._events[key]
        self._last_sweep = now

    def allow(self, key: str) -> bool:
        return self.check(key).allowed
