"""Custody provider webhook (no auth; verified by HMAC signature header)."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from libs.common.config import get_settings
from libs.db.session import get_async_db
from services.payouts_service.services.custody import (
    CustodyProvider,
    get_custody_provider,
)
from services.payouts_service.services.reconciler import reconcile_delivery
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
settings = get_settings()


@router.post("/custody")
async def custody_webhook(
    request: Request,
    provider: CustodyProvider = Depends(get_custody_provider),
    db: AsyncSession = Depends(get_async_db),
):
    """Apply a custody event. Replays are acknowledged without side effects."""
    raw = await request.body()
    signature = request.headers.get(settings.CUSTODY_WEBHOOK_SIGNATURE_HEADER)
    result = await reconcile_delivery(
        db, provider, raw_body=raw, signature=signature, source="custody"
    )
    return JSONResponse(status_code=result.status_code, content=result.body)
