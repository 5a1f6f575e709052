"""FastAPI application for the Payouts Service."""

from fastapi import FastAPI
from libs.common.middleware import add_observability_middleware
from services.payouts_service.routers import payouts_router, webhooks_router


def create_app() -> FastAPI:
    """Create and configure the Payouts Service FastAPI app."""
    app = FastAPI(
        title="Fleet Payouts Service",
        version="0.1.0",
        description="Payout distribution and custody webhook reconciliation.",
    )
    add_observability_middleware(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "payouts"}

    app.include_router(payouts_router)

    # Provider callbacks (public, signature-verified)
    app.include_router(webhooks_router)

    return app


app = create_app()
