"""Ownership service routers."""

from services.ownership_service.routers.assets import router as assets_router
from services.ownership_service.routers.tokens import router as tokens_router

__all__ = [
    "assets_router",
    "tokens_router",
]
