"""Revenue service routers."""

from services.revenue_service.routers.revenue import router as revenue_router

__all__ = ["revenue_router"]
