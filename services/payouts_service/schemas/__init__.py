"""Payouts service schemas."""

from services.payouts_service.schemas.payout import (  # noqa: F401
    DistributeRequest,
    DistributeResponse,
    DistributionResponse,
    PayoutBatchResponse,
    PayoutListResponse,
    PayoutResponse,
)

__all__ = [
    "DistributeRequest",
    "DistributeResponse",
    "DistributionResponse",
    "PayoutBatchResponse",
    "PayoutListResponse",
    "PayoutResponse",
]
