"""Revenue Service models package."""

from services.revenue_service.models.enums import RevenueSourceType  # noqa: F401
from services.revenue_service.models.revenue_event import RevenueEvent  # noqa: F401

__all__ = [
    "RevenueSourceType",
    "RevenueEvent",
]
