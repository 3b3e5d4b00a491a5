"""Redis sorted-set pending store.

``ZADD key NX score member`` is Redis's atomic add-if-not-member: concurrent
callers for the same member see exactly one insert. Scores are epoch
milliseconds so a worker can drain oldest-first with ``ZPOPMIN``.
"""

from __future__ import annotations

import logging

import redis

from tokengate.adapters.pending_set.base import AbstractPendingSetStore
from tokengate.core.errors import StoreUnavailableAppError

logger = logging.getLogger(__name__)


class RedisPendingSetStore(AbstractPendingSetStore):
    """Pending set stored in a single Redis sorted set."""

    def __init__(self, client: redis.Redis, *, key: str) -> None:
        self._client = client
        self._key = key

    def _unavailable(self, exc: redis.exceptions.RedisError) -> StoreUnavailableAppError:
        logger.error(
            "pending_set.store_error",
            extra={"store": "redis", "error_type": type(exc).__name__, "error_msg": str(exc)},
        )
        return StoreUnavailableAppError(
            code="pending_set_unavailable",
            message="Verification queue is unavailable",
            details={"store": "redis"},
        )

    def insert_if_absent(self, member: str, score: float) -> bool:
        try:
            added = self._client.zadd(self._key, {member: score}, nx=True)
        except redis.exceptions.RedisError as exc:
            raise self._unavailable(exc) from exc
        return int(added) == 1

    def size(self) -> int:
        try:
            return int(self._client.zcard(self._key))
        except redis.exceptions.RedisError as exc:
            raise self._unavailable(exc) from exc
