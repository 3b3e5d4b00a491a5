from __future__ import annotations

from tokengate.api.routes.health import router as health_router
from tokengate.api.routes.tokens import router as tokens_router
from tokengate.api.routes.verification import router as verification_router

__all__ = ["health_router", "tokens_router", "verification_router"]
