"""Best-effort outcome notifications to the notifications collaborator."""

from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.common.service_client import internal_post
from services.payouts_service.models import PayoutBatch

logger = get_logger(__name__)
settings = get_settings()


async def notify_batch_outcome(batch: PayoutBatch, distributions: list[dict]) -> None:
    """Never raises; a failed notification is logged and dropped."""
    if not settings.NOTIFICATIONS_ENABLED:
        return
    try:
        resp = await internal_post(
            service_url=settings.NOTIFICATIONS_SERVICE_URL,
            path="/internal/notifications/payouts",
            calling_service="payouts",
            json={
                "batch_id": str(batch.id),
                "reference": batch.reference,
                "asset_id": str(batch.asset_id),
                "status": batch.status.value,
                "period": batch.period,
                "distributions": distributions,
            },
            timeout=5.0,
        )
        if resp.status_code >= 400:
            logger.warning(
                "Payout notification for batch %s rejected (http %d): %s",
                batch.reference,
                resp.status_code,
                resp.text,
            )
    except Exception as exc:
        logger.warning(
            "Payout notification for batch %s failed: %s", batch.reference, exc
        )
