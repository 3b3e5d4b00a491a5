"""Composition root: builds the admission components from settings.

Components receive their configuration through constructors; only this
module reads ``settings``. The container is attached to ``app.state`` by the
app factory, and its lifecycle (sweeper thread, store connections) follows
the FastAPI lifespan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import redis

from tokengate.adapters.pending_set.base import AbstractPendingSetStore
from tokengate.adapters.pending_set.in_memory import InMemoryPendingSetStore
from tokengate.adapters.pending_set.redis_store import RedisPendingSetStore
from tokengate.adapters.rate_limit.base import AbstractRateLimiter
from tokengate.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from tokengate.adapters.rate_limit.redis_store import RedisFixedWindowRateLimiter
from tokengate.adapters.registry.base import AbstractIdentityRegistry
from tokengate.adapters.registry.in_memory import InMemoryIdentityRegistry
from tokengate.adapters.registry.sqlite import SqliteIdentityRegistry
from tokengate.core.config import PROJECT_ROOT, Settings, settings
from tokengate.core.errors import StoreUnavailableAppError
from tokengate.services.collision_guard import CollisionGuard
from tokengate.services.rate_limiter import RateLimiter
from tokengate.services.verification_queue import VerificationQueue

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """Wired admission components and the resources they share."""

    registry: AbstractIdentityRegistry
    rate_limiter: RateLimiter
    collision_guard: CollisionGuard
    verification_queue: VerificationQueue | None
    sweep_enabled: bool = True
    redis_client: redis.Redis | None = field(default=None, repr=False)

    def require_verification_queue(self) -> VerificationQueue:
        """Return the queue or report the feature as unavailable (HTTP 503)."""
        if self.verification_queue is None:
            raise StoreUnavailableAppError(
                code="verification_queue_unavailable",
                message="Verification queue is not configured",
                details={"hint": "Set REDIS_URL or VERIFICATION_QUEUE_BACKEND=memory"},
            )
        return self.verification_queue

    def start(self) -> None:
        if self.sweep_enabled:
            self.rate_limiter.start()

    def close(self) -> None:
        self.rate_limiter.stop()
        self.registry.close()
        if self.redis_client is not None:
            self.redis_client.close()


def _build_redis_client(cfg: Settings) -> redis.Redis | None:
    if not cfg.redis.url:
        return None
    return redis.Redis.from_url(
        cfg.redis.url,
        decode_responses=True,
        socket_connect_timeout=cfg.redis.socket_timeout_seconds,
        socket_timeout=cfg.redis.socket_timeout_seconds,
        health_check_interval=30,
    )


def _build_registry(cfg: Settings) -> AbstractIdentityRegistry:
    if cfg.registry.backend == "sqlite":
        db_path = Path(cfg.registry.sqlite_path)
        if not db_path.is_absolute():
            db_path = PROJECT_ROOT / db_path
        return SqliteIdentityRegistry(db_path)
    return InMemoryIdentityRegistry()


def _build_rate_limit_store(cfg: Settings, client: redis.Redis | None) -> AbstractRateLimiter:
    if cfg.rate_limit.backend == "redis":
        if client is None:
            raise ValueError("REDIS_URL is required when RATE_LIMIT_BACKEND=redis")
        return RedisFixedWindowRateLimiter(
            client,
            limit=cfg.rate_limit.max,
            window_seconds=cfg.rate_limit.window_seconds,
        )
    return InMemoryFixedWindowRateLimiter(
        limit=cfg.rate_limit.max,
        window_seconds=cfg.rate_limit.window_seconds,
        shards=cfg.rate_limit.shards,
    )


def _build_pending_set(cfg: Settings, client: redis.Redis | None) -> AbstractPendingSetStore | None:
    if cfg.verification_queue.backend == "redis":
        if client is None:
            logger.warning(
                "verification_queue.unavailable",
                extra={"reason": "redis_url_not_configured"},
            )
            return None
        return RedisPendingSetStore(client, key=cfg.verification_queue.key)
    return InMemoryPendingSetStore()


def build_container(cfg: Settings | None = None) -> Container:
    """Build every component from settings (global settings by default)."""
    cfg = cfg or settings
    client = _build_redis_client(cfg)
    registry = _build_registry(cfg)

    rate_limiter = RateLimiter(
        _build_rate_limit_store(cfg, client),
        limit=cfg.rate_limit.max,
        window_seconds=cfg.rate_limit.window_seconds,
        fail_open=cfg.rate_limit.fail_open,
    )
    collision_guard = CollisionGuard(
        registry,
        deterrence_window_seconds=cfg.collision_guard.deterrence_window_ms / 1000,
        min_name_length=cfg.collision_guard.min_name_length,
        max_name_length=cfg.collision_guard.max_name_length,
        max_symbol_length=cfg.collision_guard.max_symbol_length,
    )

    pending = _build_pending_set(cfg, client)
    verification_queue = (
        VerificationQueue(
            registry,
            pending,
            depth_warning_threshold=cfg.verification_queue.depth_warning_threshold,
        )
        if pending is not None
        else None
    )

    return Container(
        registry=registry,
        rate_limiter=rate_limiter,
        collision_guard=collision_guard,
        verification_queue=verification_queue,
        sweep_enabled=cfg.rate_limit.sweep_enabled and cfg.rate_limit.backend == "memory",
        redis_client=client,
    )
