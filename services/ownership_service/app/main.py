"""FastAPI application for the Ownership Service."""

from fastapi import FastAPI
from libs.common.middleware import add_observability_middleware
from services.ownership_service.routers import assets_router, tokens_router


def create_app() -> FastAPI:
    """Create and configure the Ownership Service FastAPI app."""
    app = FastAPI(
        title="Fleet Ownership Service",
        version="0.1.0",
        description="Assets and the fractional ownership registry.",
    )
    add_observability_middleware(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "ownership"}

    app.include_router(assets_router)
    app.include_router(tokens_router)

    return app


app = create_app()
