"""FastAPI application for the Revenue Service."""

from fastapi import FastAPI
from libs.common.middleware import add_observability_middleware
from services.revenue_service.routers import revenue_router
from services.revenue_service.services.split_config import get_split_config


def create_app() -> FastAPI:
    """Create and configure the Revenue Service FastAPI app."""
    # Raises RevenueSplitConfigError on a bad split.
    get_split_config()

    app = FastAPI(
        title="Fleet Revenue Service",
        version="0.1.0",
        description="Revenue events and the stakeholder split.",
    )
    add_observability_middleware(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "revenue"}

    app.include_router(revenue_router)

    return app


app = create_app()
