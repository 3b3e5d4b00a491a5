"""Rate limiting dependency for FastAPI routes.

Routes declare ``Depends(rate_limited("scope"))``. Each scope gets its own
budget per client because keys are namespaced as ``{scope}:{client_ip}``,
while all scopes share the one limiter owned by the container.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import HTTPException, Request, status

from tokengate.core.client_identity import extract_client_ip
from tokengate.core.config import settings
from tokengate.core.container import Container
from tokengate.core.logging import hash_for_log

logger = logging.getLogger(__name__)


def get_container(request: Request) -> Container:
    """FastAPI dependency returning the container attached by the app factory."""
    return request.app.state.container


def build_rate_limit_key(scope: str, request: Request) -> str:
    client_ip = extract_client_ip(
        request.headers,
        request.client.host if request.client else None,
        trust_forwarded_headers=settings.app.trust_forwarded_headers,
    )
    return f"{scope}:{client_ip}"


def rate_limited(scope: str) -> Callable[[Request], None]:
    """Build a dependency that consumes one unit of ``scope``'s budget.

    Raises:
        HTTPException: 429 Too Many Requests when the budget is exhausted.
    """

    def enforce_rate_limit(request: Request) -> None:
        if not settings.rate_limit.enabled:
            return

        limiter = get_container(request).rate_limiter
        key = build_rate_limit_key(scope, request)
        result = limiter.check(key)

        log_fields = {
            "scope": scope,
            "key_hash": hash_for_log(key),
            "limit": result.limit,
            "remaining": result.remaining,
            "degraded": result.degraded,
        }
        if result.allowed:
            logger.debug("rate_limit.allowed", extra=log_fields)
            return

        retry_after = result.retry_after_seconds or 1
        logger.warning(
            "rate_limit.exceeded",
            extra={**log_fields, "retry_after_s": retry_after},
        )

        headers: dict[str, str] = {}
        if settings.rate_limit.include_headers:
            headers["Retry-After"] = str(retry_after)
            headers["X-RateLimit-Limit"] = str(result.limit)
            headers["X-RateLimit-Remaining"] = str(result.remaining)
            headers["X-RateLimit-Reset"] = str(int(result.reset_at))

        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later.",
            headers=headers or None,
        )

    return enforce_rate_limit
