from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) to
improve testability and separation of concerns compared to a monolithic main.
"""

from fastapi import FastAPI

from sapsync.api.routes import admin_router, health_router
from sapsync.core.config import settings
from sapsync.core.exception_handlers import setup_exception_handlers
from sapsync.core.logging import configure_logging
from sapsync.core.middleware import request_id_middleware
from sapsync.core.openapi import apply_openapi_customizations


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="SAP WooCommerce Sync",
        description=(
            "Guard rails around SAP Business One Service Layer synchronization: "
            "per-action rate limiting, sync logs, and dead letter inspection, "
            "resolution and re-enqueue. Admin routes require X-API-Key."
        ),
        version="0.1.0",
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(admin_router, prefix="/v1")
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags, exemptions)
    apply_openapi_customizations(app)

    return app
