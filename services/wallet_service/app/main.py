"""FastAPI application for the Wallet Service."""

from fastapi import FastAPI
from libs.common.middleware import add_observability_middleware
from services.wallet_service.routers import admin_router, internal_router, wallet_router


def create_app() -> FastAPI:
    """Create and configure the Wallet Service FastAPI app."""
    app = FastAPI(
        title="Fleet Wallet Service",
        version="0.1.0",
        description="Wallet balances and the append-only transaction ledger.",
    )
    add_observability_middleware(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "wallet"}

    # Owner-facing routes
    app.include_router(wallet_router)

    # Admin routes
    app.include_router(admin_router)

    # Internal service-to-service routes (not proxied by gateway)
    app.include_router(internal_router)

    return app


app = create_app()
