"""Unit tests for the in-memory fixed-window rate limiter adapter."""

import threading
from unittest.mock import Mock

import pytest

from tokengate.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter


def test_allows_up_to_limit_in_same_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=3, window_seconds=60, clock=clock)

    assert limiter.consume("k").allowed is True
    assert limiter.consume("k").allowed is True
    result = limiter.consume("k")
    assert result.allowed is True
    assert result.count == 3
    assert result.remaining == 0


def test_blocks_when_over_limit_without_incrementing() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=2, window_seconds=60, clock=clock)

    limiter.consume("k")
    limiter.consume("k")

    blocked = limiter.consume("k")
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.count == 2
    assert blocked.retry_after_seconds == 60
    assert limiter.peek("k").count == 2


def test_window_opens_at_first_request() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)

    first = limiter.consume("k")
    assert first.reset_at == 1060.0

    clock.return_value = 1045.0
    assert limiter.consume("k").retry_after_seconds == 15


def test_reset_happens_strictly_after_reset_at() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=10, clock=clock)

    assert limiter.consume("k").allowed is True

    clock.return_value = 1010.0
    assert limiter.consume("k").allowed is False

    clock.return_value = 1010.001
    fresh = limiter.consume("k")
    assert fresh.allowed is True
    assert fresh.count == 1
    assert fresh.reset_at == pytest.approx(1020.001)


def test_isolated_by_key() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)

    assert limiter.consume("k1").allowed is True
    assert limiter.consume("k1").allowed is False

    assert limiter.consume("k2").allowed is True


def test_cost_larger_than_limit_is_rejected_without_creating_record() -> None:
    limiter = InMemoryFixedWindowRateLimiter(limit=2, window_seconds=60, clock=Mock(return_value=1.0))

    assert limiter.consume("k", cost=3).allowed is False
    assert len(limiter) == 0


def test_sweep_removes_only_expired_records() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=5, window_seconds=60, clock=clock, shards=4)

    for i in range(10):
        limiter.consume(f"old-{i}")

    clock.return_value = 1030.0
    limiter.consume("young")

    clock.return_value = 1061.0
    assert limiter.sweep() == 10
    assert len(limiter) == 1
    assert limiter.peek("young") is not None


def test_record_at_exact_reset_at_survives_sweep() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=5, window_seconds=60, clock=clock)
    limiter.consume("k")

    clock.return_value = 1060.0
    assert limiter.sweep() == 0
    assert len(limiter) == 1


def test_concurrent_checks_admit_exactly_limit() -> None:
    limit = 10
    limiter = InMemoryFixedWindowRateLimiter(limit=limit, window_seconds=60, clock=Mock(return_value=1000.0))
    barrier = threading.Barrier(2 * limit)
    results: list[bool] = []
    results_lock = threading.Lock()

    def _worker() -> None:
        barrier.wait()
        allowed = limiter.consume("1.2.3.4").allowed
        with results_lock:
            results.append(allowed)

    threads = [threading.Thread(target=_worker) for _ in range(2 * limit)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == limit
    assert results.count(False) == limit
    assert limiter.peek("1.2.3.4").count == limit


def test_concurrent_checks_across_window_boundary_reset_once() -> None:
    limit = 10
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=limit, window_seconds=60, clock=clock)
    for _ in range(limit):
        limiter.consume("k")

    clock.return_value = 1100.0
    barrier = threading.Barrier(2 * limit)
    admitted = []

    def _worker() -> None:
        barrier.wait()
        if limiter.consume("k").allowed:
            admitted.append(1)

    threads = [threading.Thread(target=_worker) for _ in range(2 * limit)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(admitted) == limit
    assert limiter.peek("k").count == limit


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0, "window_seconds": 60},
        {"limit": 1, "window_seconds": 0},
        {"limit": 1, "window_seconds": 60, "shards": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        InMemoryFixedWindowRateLimiter(**kwargs)


def test_invalid_consume_args() -> None:
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60)

    with pytest.raises(ValueError):
        limiter.consume("")

    with pytest.raises(ValueError):
        limiter.consume("k", cost=0)
