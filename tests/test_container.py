"""Tests for wiring components from settings."""

from unittest.mock import MagicMock, patch

import pytest

from tokengate.adapters.pending_set.in_memory import InMemoryPendingSetStore
from tokengate.adapters.pending_set.redis_store import RedisPendingSetStore
from tokengate.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from tokengate.adapters.rate_limit.redis_store import RedisFixedWindowRateLimiter
from tokengate.adapters.registry.in_memory import InMemoryIdentityRegistry
from tokengate.adapters.registry.sqlite import SqliteIdentityRegistry
from tokengate.core.config import (
    CollisionGuardSettings,
    RateLimitSettings,
    RedisSettings,
    RegistrySettings,
    Settings,
    VerificationQueueSettings,
)
from tokengate.core.container import build_container
from tokengate.core.errors import StoreUnavailableAppError


def test_memory_defaults():
    container = build_container(Settings())

    assert isinstance(container.registry, InMemoryIdentityRegistry)
    assert isinstance(container.rate_limiter.store, InMemoryFixedWindowRateLimiter)
    assert isinstance(container.verification_queue.pending, InMemoryPendingSetStore)
    assert container.sweep_enabled is True
    assert container.redis_client is None


def test_settings_flow_into_components():
    cfg = Settings(
        rate_limit=RateLimitSettings(max=7, window_ms=30_000, fail_open=False),
        collision_guard=CollisionGuardSettings(deterrence_window_ms=120_000, min_name_length=2),
        verification_queue=VerificationQueueSettings(depth_warning_threshold=5),
    )

    container = build_container(cfg)

    assert container.rate_limiter.limit == 7
    assert container.rate_limiter.window_seconds == 30.0
    assert container.rate_limiter.fail_open is False
    assert container.collision_guard.deterrence_window_seconds == 120.0
    assert container.collision_guard.normalize("ab").name == "ab"
    assert container.verification_queue.depth_warning_threshold == 5


def test_redis_queue_without_url_is_unavailable():
    container = build_container(Settings(verification_queue=VerificationQueueSettings(backend="redis")))

    assert container.verification_queue is None
    with pytest.raises(StoreUnavailableAppError) as exc_info:
        container.require_verification_queue()
    assert exc_info.value.code == "verification_queue_unavailable"


def test_redis_rate_limit_without_url_fails_fast():
    with pytest.raises(ValueError):
        build_container(Settings(rate_limit=RateLimitSettings(backend="redis")))


def test_redis_backends_share_one_client():
    client = MagicMock()
    cfg = Settings(
        rate_limit=RateLimitSettings(backend="redis"),
        verification_queue=VerificationQueueSettings(backend="redis", key="q:test"),
        redis=RedisSettings(url="redis://localhost:6379/0"),
    )

    with patch("tokengate.core.container.redis.Redis.from_url", return_value=client) as from_url:
        container = build_container(cfg)

    from_url.assert_called_once()
    assert isinstance(container.rate_limiter.store, RedisFixedWindowRateLimiter)
    assert isinstance(container.verification_queue.pending, RedisPendingSetStore)
    assert container.sweep_enabled is False

    container.close()
    client.close.assert_called_once_with()


def test_sqlite_registry(tmp_path):
    cfg = Settings(registry=RegistrySettings(backend="sqlite", sqlite_path=str(tmp_path / "r.db")))

    container = build_container(cfg)

    assert isinstance(container.registry, SqliteIdentityRegistry)
    assert (tmp_path / "r.db").exists()


def test_start_and_close_manage_sweeper():
    container = build_container(Settings())

    container.start()
    try:
        assert container.rate_limiter.sweeping is True
    finally:
        container.close()

    assert container.rate_limiter.sweeping is False
