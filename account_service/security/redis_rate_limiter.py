"""Redis-backed sliding window throttle shared by every service replica."""

from __future__ import annotations

import math
import time
from typing import Final

from redis import Redis

from .rate_limiter import ThrottleDecision


class RedisSlidingWindowRateLimiter:
    """Distributed sliding window limiter implemented with Redis sorted sets.

    The Lua script returns ``0`` when the attempt is admitted, otherwise the
    number of milliseconds until the oldest attempt leaves the window.
    """

    _LUA_SCRIPT: Final[str] = """
    local key = KEYS[1]
    local window_ms = tonumber(ARGV[1])
    local max_requests = tonumber(ARGV[2])
    local now_ms = tonumber(ARGV[3])

    redis.call('ZREMRANGEBYSCORE', key, 0, now_ms - window_ms)
    if redis.call('ZCARD', key) >= max_requests then
        local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
        local wait = tonumber(oldest[2]) + window_ms - now_ms
        if wait < 1 then
            wait = 1
        end
        return wait
    end
    local seq = redis.call('INCR', key .. ':seq')
    redis.call('PEXPIRE', key .. ':seq', window_ms)
    redis.call('ZADD', key, now_ms, tostring(now_ms) .. ':' .. tostring(seq))
    redis.call('PEXPIRE', key, window_ms)
    return 0
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "login-throttle",
    ) -> None:
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix
        self._script = client.register_script(self._LUA_SCRIPT)

    def check(self, key: str) -> ThrottleDecision:
        """Admit or reject an attempt for ``key`` atomically on the server."""
        now_ms = int(time.time() * 1000)
        wait_ms = int(
            self._script(
                keys=[f"{self._key_prefix}:{key}"],
                args=[self._window_ms, self._max_requests, now_ms],
            )
        )
        if wait_ms == 0:
            return ThrottleDecision(True)
        return ThrottleDecision(False, max(math.ceil(wait_ms / 1000), 1))

    def allow(self, key: str) -> bool:
        return self.check(key).allowed
