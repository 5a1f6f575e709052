"""Admin wallet management endpoints."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.wallet_service.models import WalletStatus
from services.wallet_service.schemas import (
    FreezeWalletRequest,
    ReconciliationResponse,
    UnfreezeWalletRequest,
    WalletResponse,
)
from services.wallet_service.services.wallet_ops import (
    get_wallet_by_id,
    reconcile_wallet,
    set_wallet_status,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/admin/wallet", tags=["admin-wallet"])


@router.get("/{wallet_id}", response_model=WalletResponse)
async def get_wallet_detail(
    wallet_id: uuid.UUID,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await get_wallet_by_id(db, wallet_id)


@router.get("/{wallet_id}/reconcile", response_model=ReconciliationResponse)
async def reconcile(
    wallet_id: uuid.UUID,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Compare the cached balance with the sum of completed ledger entries."""
    report = await reconcile_wallet(db, wallet_id)
    return ReconciliationResponse(
        wallet_id=report.wallet_id,
        cached_balance=report.cached_balance,
        ledger_balance=report.ledger_balance,
        completed_entries=report.completed_entries,
        pending_entries=report.pending_entries,
        consistent=report.consistent,
    )


@router.post("/{wallet_id}/freeze", response_model=WalletResponse)
async def freeze_wallet(
    wallet_id: uuid.UUID,
    body: FreezeWalletRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Freeze a wallet. Credits still land; debits are refused."""
    wallet = await get_wallet_by_id(db, wallet_id)
    if wallet.status == WalletStatus.FROZEN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Wallet is already frozen",
        )
    return await set_wallet_status(
        db,
        wallet_id=wallet_id,
        status=WalletStatus.FROZEN,
        actor=admin.user_id,
        reason=body.reason,
    )


@router.post("/{wallet_id}/unfreeze", response_model=WalletResponse)
async def unfreeze_wallet(
    wallet_id: uuid.UUID,
    body: UnfreezeWalletRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Unfreeze a wallet."""
    wallet = await get_wallet_by_id(db, wallet_id)
    if wallet.status != WalletStatus.FROZEN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Wallet is not frozen",
        )
    return await set_wallet_status(
        db,
        wallet_id=wallet_id,
        status=WalletStatus.ACTIVE,
        actor=admin.user_id,
        reason=body.reason,
    )
