from __future__ import annotations

"""Application factory for the FastAPI app.

Builds the admission components, attaches them to ``app.state`` and ties
their lifecycle (sweeper thread, store connections) to the app lifespan.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from tokengate.api.routes import health_router, tokens_router, verification_router
from tokengate.core.config import settings
from tokengate.core.container import Container, build_container
from tokengate.core.exception_handlers import setup_exception_handlers
from tokengate.core.logging import configure_logging
from tokengate.core.middleware import request_id_middleware
from tokengate.core.openapi import apply_openapi_customizations


def create_app(container: Container | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        container: Pre-built components (tests inject fakes); built from
            settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    container = container or build_container(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        container.start()
        try:
            yield
        finally:
            container.close()

    app = FastAPI(
        title="Tokengate",
        description=(
            "Admission control for token launches: per-client rate limiting, "
            "copycat deterrence for token names and symbols, and a deduplicated "
            "verification queue."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.container = container

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(tokens_router, prefix="/v1")
    app.include_router(verification_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
