"""Rate limiter interfaces.

The service layer depends on this abstraction (not the concrete storage) so
the per-process table and the shared Redis table are interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the request is admitted.
        limit: Max requests per window.
        count: Requests counted in the current window after this decision.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds at which the current window ends.
        retry_after_seconds: Suggested wait time in seconds when blocked.
        degraded: True when the decision was made without consulting the store.
    """

    allowed: bool
    limit: int
    count: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None
    degraded: bool = False


class AbstractRateLimiter(ABC):
    """Interface for fixed-window rate limit stores.

    Implementations must apply the increment-or-reset step for a key as one
    atomic unit, and must translate storage failures into
    ``StoreUnavailableAppError``.
    """

    @abstractmethod
    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for a given key.

        Args:
            key: Unique identifier (e.g., scoped client IP).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    def sweep(self) -> int:
        """Evict expired records; returns how many were removed.

        Stores that expire records natively keep the default no-op.
        """
        return 0
