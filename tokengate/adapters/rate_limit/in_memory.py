"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe without a global lock: keys are spread over independently
  locked shards, so unrelated keys rarely contend.
- Expired records are only reclaimed by :meth:`sweep`; the request path
  overwrites them in place.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from tokengate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


@dataclass
class RateLimitRecord:
    count: int
    reset_at: float


class _Shard:
    __slots__ = ("lock", "records")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.records: dict[str, RateLimitRecord] = {}


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per key in a window opened by the first request.

    The window of a key starts at its first admitted request and ends at
    ``reset_at = start + window_seconds``. The first request seen strictly
    after ``reset_at`` overwrites the record with a fresh count.

    Important:
        Bursts straddling a window boundary can admit up to twice the limit in
        a short span.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        shards: int = 64,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of allowed units per window.
            window_seconds: Length of a window in seconds.
            shards: Number of independently locked partitions of the table.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit, window_seconds or shards are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if shards < 1:
            raise ValueError("shards must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._shards = tuple(_Shard() for _ in range(shards))

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def _shard_for(self, key: str) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def _result(self, *, allowed: bool, now: float, record: RateLimitRecord) -> RateLimitResult:
        remaining = max(0, self._limit - record.count)
        retry_after = None if allowed else max(1, int(math.ceil(record.reset_at - now)))
        return RateLimitResult(
            allowed=allowed,
            limit=self._limit,
            count=record.count,
            remaining=remaining,
            reset_at=record.reset_at,
            retry_after_seconds=retry_after,
        )

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for the provided key.

        Checks the window, then either opens a fresh window, increments the
        count, or rejects, all under the key's shard lock.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        shard = self._shard_for(key)
        with shard.lock:
            now = self._clock()
            record = shard.records.get(key)

            if record is None or now > record.reset_at:
                fresh = RateLimitRecord(count=cost, reset_at=now + self._window_seconds)
                if cost > self._limit:
                    return self._result(allowed=False, now=now, record=fresh)
                shard.records[key] = fresh
                return self._result(allowed=True, now=now, record=fresh)

            if record.count + cost > self._limit:
                return self._result(allowed=False, now=now, record=record)

            record.count += cost
            return self._result(allowed=True, now=now, record=record)

    def peek(self, key: str) -> RateLimitRecord | None:
        """Return a copy of the live record for ``key`` without consuming budget.

        Inspection helper for tests and debugging; request paths use :meth:`consume`.
        """
        shard = self._shard_for(key)
        with shard.lock:
            record = shard.records.get(key)
            if record is None or self._clock() > record.reset_at:
                return None
            return RateLimitRecord(count=record.count, reset_at=record.reset_at)

    def sweep(self) -> int:
        """Remove records whose window has ended.

        Shards are visited one at a time so a sweep never holds more than one
        shard lock, and requests on other shards proceed untouched.
        """
        removed = 0
        for shard in self._shards:
            with shard.lock:
                now = self._clock()
                expired = [k for k, r in shard.records.items() if now > r.reset_at]
                for key in expired:
                    del shard.records[key]
                removed += len(expired)
        return removed

    def __len__(self) -> int:
        return sum(len(shard.records) for shard in self._shards)
