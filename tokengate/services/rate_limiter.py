"""Admission decisions for rate-limited endpoints.

:class:`RateLimiter` wraps a rate limit store with the failure policy and
owns the background sweep that reclaims expired records. It is constructed
explicitly (see ``tokengate.core.container``) and has a start/stop lifecycle,
so several independent instances can coexist in tests.

Failure policy:
    ``fail_open=True`` (the default) admits the request when the store is
    unavailable and marks the result ``degraded``; ``fail_open=False``
    rejects it. Either way ``check`` does not raise on store failures.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable

from tokengate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from tokengate.core.errors import StoreUnavailableAppError, ValidationAppError
from tokengate.core.logging import hash_for_log

logger = logging.getLogger(__name__)

_MAX_KEY_LENGTH = 256


class RateLimiter:
    """Fixed-window admission control keyed by client identity."""

    def __init__(
        self,
        store: AbstractRateLimiter,
        *,
        limit: int,
        window_seconds: float,
        fail_open: bool = True,
        sweep_interval_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds
        self.fail_open = fail_open
        self.sweep_interval_seconds = sweep_interval_seconds or window_seconds
        self._clock = clock
        self._stop_event: threading.Event | None = None
        self._sweeper: threading.Thread | None = None

    def _validate_key(self, key: str) -> None:
        if not isinstance(key, str) or not key.strip() or len(key) > _MAX_KEY_LENGTH:
            raise ValidationAppError(
                code="invalid_rate_limit_key",
                message="Rate limit key must be a non-empty string",
                details={"max_length": _MAX_KEY_LENGTH},
            )

    def _degraded_result(self) -> RateLimitResult:
        now = self._clock()
        return RateLimitResult(
            allowed=self.fail_open,
            limit=self.limit,
            count=0,
            remaining=self.limit if self.fail_open else 0,
            reset_at=now + self.window_seconds,
            retry_after_seconds=None if self.fail_open else max(1, math.ceil(self.window_seconds)),
            degraded=True,
        )

    def check(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Admit or reject one request for ``key``.

        Raises:
            ValidationAppError: If ``key`` is malformed.
        """
        self._validate_key(key)

        try:
            return self.store.consume(key, cost=cost)
        except StoreUnavailableAppError as exc:
            logger.error(
                "rate_limit.store_error",
                extra={
                    "key_hash": hash_for_log(key),
                    "error_code": exc.code,
                    "policy": "fail_open" if self.fail_open else "fail_closed",
                },
            )
            return self._degraded_result()

    def sweep_once(self) -> int:
        """Evict expired records now; returns the number removed."""
        removed = self.store.sweep()
        if removed:
            logger.debug("rate_limit.swept", extra={"removed": removed})
        return removed

    def _sweep_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.sweep_interval_seconds):
            try:
                self.sweep_once()
            except Exception:
                # Keep sweeping; a failed pass only delays reclamation
                logger.exception("rate_limit.sweep_failed")

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def start(self) -> None:
        """Start the background sweep thread (idempotent)."""
        if self.sweeping:
            return
        # One stop event per thread; a sweeper that outlived stop() keeps its own
        self._stop_event = threading.Event()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            args=(self._stop_event,),
            name="rate-limit-sweeper",
            daemon=True,
        )
        self._sweeper.start()
        logger.info(
            "rate_limit.sweeper_started",
            extra={"interval_s": self.sweep_interval_seconds},
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the sweep thread to exit and wait up to ``timeout`` for it."""
        if self._sweeper is None or self._stop_event is None:
            return
        self._stop_event.set()
        self._sweeper.join(timeout)
        if self._sweeper.is_alive():
            logger.warning("rate_limit.sweeper_stop_timeout", extra={"timeout_s": timeout})
        self._sweeper = None
        self._stop_event = None
        logger.info("rate_limit.sweeper_stopped")
