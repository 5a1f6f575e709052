"""Payout distribution endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_current_user, require_operator
from libs.auth.models import AuthUser
from libs.common.errors import NotFound
from libs.db.session import get_async_db
from services.ownership_service.services.registry import get_asset
from services.payouts_service.schemas import (
    DistributeRequest,
    DistributeResponse,
    DistributionResponse,
    PayoutBatchResponse,
    PayoutListResponse,
    PayoutResponse,
)
from services.payouts_service.services.custody import (
    CustodyProvider,
    get_custody_provider,
)
from services.payouts_service.services.distributor import (
    distribute,
    ensure_can_distribute,
    get_batch,
    list_batch_payouts,
    list_owner_payouts,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payouts", tags=["payouts"])


@router.post("/distribute", response_model=DistributeResponse)
async def distribute_payout(
    body: DistributeRequest,
    operator: AuthUser = Depends(require_operator),
    provider: CustodyProvider = Depends(get_custody_provider),
    db: AsyncSession = Depends(get_async_db),
):
    """Distribute an amount across the asset's active owners.

    Each distribution carries its own status; a batch where some owners
    failed is reported as partially completed.
    """
    result = await distribute(
        db,
        provider,
        asset_id=body.asset_id,
        total_amount=body.total_amount,
        caller=operator,
        period=body.period,
        description=body.description,
    )
    return DistributeResponse(
        payout_batch_id=result.payout_batch_id,
        reference=result.batch.reference,
        status=result.batch.status,
        total_amount=result.batch.total_amount,
        distributed_amount=result.batch.distributed_amount,
        distributions=[
            DistributionResponse.model_validate(d) for d in result.distributions
        ],
        external_tx_hash=result.external_tx_hash,
    )


@router.get("/batches/{batch_id}", response_model=PayoutBatchResponse)
async def get_payout_batch(
    batch_id: uuid.UUID,
    operator: AuthUser = Depends(require_operator),
    db: AsyncSession = Depends(get_async_db),
):
    batch = await get_batch(db, batch_id)
    if not batch:
        raise NotFound("Payout batch not found", batch_id=str(batch_id))
    ensure_can_distribute(operator, await get_asset(db, batch.asset_id))

    response = PayoutBatchResponse.model_validate(batch)
    response.payouts = [
        PayoutResponse.model_validate(p) for p in await list_batch_payouts(db, batch.id)
    ]
    return response


@router.get("/me", response_model=PayoutListResponse)
async def get_my_payouts(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Payouts received by the caller, newest first."""
    payouts = await list_owner_payouts(db, current_user.user_id, skip=skip, limit=limit)
    return PayoutListResponse(
        payouts=[PayoutResponse.model_validate(p) for p in payouts],
        skip=skip,
        limit=limit,
    )
