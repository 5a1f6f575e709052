"""Revenue Service schemas."""

from services.revenue_service.schemas.revenue import (  # noqa: F401
    CompensateRequest,
    RevenueEventCreateRequest,
    RevenueEventResponse,
    RevenueSummaryResponse,
    RideRevenueRequest,
)

__all__ = [
    "CompensateRequest",
    "RevenueEventCreateRequest",
    "RevenueEventResponse",
    "RevenueSummaryResponse",
    "RideRevenueRequest",
]
