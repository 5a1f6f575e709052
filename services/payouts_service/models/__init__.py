"""Payouts service models package."""

from services.payouts_service.models.core import (  # noqa: F401
    Payout,
    PayoutBatch,
    WebhookLog,
)
from services.payouts_service.models.enums import (  # noqa: F401
    PayoutBatchStatus,
    PayoutStatus,
    WebhookLogStatus,
)

__all__ = [
    "Payout",
    "PayoutBatch",
    "PayoutBatchStatus",
    "PayoutStatus",
    "WebhookLog",
    "WebhookLogStatus",
]
