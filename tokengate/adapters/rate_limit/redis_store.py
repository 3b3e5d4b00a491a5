"""Redis-backed fixed-window rate limiter.

Shares one counter per key across every worker process. The
increment-or-reset step runs as a server-side Lua script, so it is atomic
with respect to all other clients; the key's TTL is the window, so Redis
itself garbage-collects expired records.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

import redis

from tokengate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from tokengate.core.errors import StoreUnavailableAppError

logger = logging.getLogger(__name__)

# KEYS[1] = counter key; ARGV = limit, window_ms, cost
# Returns {allowed (0/1), count, ttl_ms}
_CONSUME_SCRIPT = """
local limit = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local cost = tonumber(ARGV[3])
local current = redis.call('GET', KEYS[1])
if not current then
  if cost > limit then
    return {0, cost, window}
  end
  redis.call('SET', KEYS[1], cost, 'PX', window)
  return {1, cost, window}
end
current = tonumber(current)
local ttl = redis.call('PTTL', KEYS[1])
if ttl < 0 then
  redis.call('PEXPIRE', KEYS[1], window)
  ttl = window
end
if current + cost > limit then
  return {0, current, ttl}
end
redis.call('INCRBY', KEYS[1], cost)
return {1, current + cost, ttl}
"""


class RedisFixedWindowRateLimiter(AbstractRateLimiter):
    """Fixed-window limiter storing ``count`` in a Redis string with a PX expiry."""

    def __init__(
        self,
        client: redis.Redis,
        *,
        limit: int,
        window_seconds: float,
        key_prefix: str = "ratelimit:",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        self._client = client
        self._limit = limit
        self._window_ms = max(1, int(window_seconds * 1000))
        self._key_prefix = key_prefix
        self._clock = clock
        self._script = client.register_script(_CONSUME_SCRIPT)

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        try:
            allowed, count, ttl_ms = self._script(
                keys=[f"{self._key_prefix}{key}"],
                args=[self._limit, self._window_ms, cost],
            )
        except redis.exceptions.RedisError as exc:
            raise StoreUnavailableAppError(
                code="rate_limit_store_unavailable",
                message="Rate limit store is unavailable",
                details={"store": "redis"},
            ) from exc

        now = self._clock()
        allowed = bool(int(allowed))
        count = int(count)
        reset_at = now + int(ttl_ms) / 1000
        return RateLimitResult(
            allowed=allowed,
            limit=self._limit,
            count=count,
            remaining=max(0, self._limit - count),
            reset_at=reset_at,
            retry_after_seconds=None if allowed else max(1, int(math.ceil(int(ttl_ms) / 1000))),
        )
