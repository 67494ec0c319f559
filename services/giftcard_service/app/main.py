"""FastAPI application for the Gift Card Service."""

from fastapi import FastAPI
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.giftcard_service.routers import (
    admin_router,
    gift_cards_router,
    internal_router,
)


def create_app() -> FastAPI:
    """Create and configure the Gift Card Service FastAPI app."""
    app = FastAPI(
        title="Gift Card Service",
        version="0.1.0",
        description="Gift card issuance, ledger and redemption service.",
    )

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app)

    # Typed gift card errors -> JSON error bodies
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "gift-cards"}

    # Member-facing routes
    app.include_router(gift_cards_router)

    # Admin routes
    app.include_router(admin_router)

    # Internal service-to-service routes (not proxied by gateway)
    app.include_router(internal_router)

    return app


app = create_app()
