"""Payouts service routers."""

from services.payouts_service.routers.payouts import router as payouts_router
from services.payouts_service.routers.webhooks import router as webhooks_router

__all__ = [
    "payouts_router",
    "webhooks_router",
]
