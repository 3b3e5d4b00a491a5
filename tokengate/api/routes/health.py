from __future__ import annotations

from fastapi import APIRouter, Depends

from tokengate.core.container import Container
from tokengate.core.rate_limit import get_container

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe for load balancers."""

    return {"status": "ok"}


@router.get("/health/features")
def feature_status(container: Container = Depends(get_container)) -> dict:
    """Report which admission features are wired and running.

    A feature whose backend is not configured is reported as unavailable
    rather than failing the probe.
    """

    return {
        "status": "ok",
        "features": {
            "rate_limit": {
                "available": True,
                "sweeper_running": container.rate_limiter.sweeping,
                "fail_open": container.rate_limiter.fail_open,
            },
            "collision_guard": {"available": True},
            "verification_queue": {"available": container.verification_queue is not None},
        },
    }
