"""Owner-facing wallet endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.errors import NotFound
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.wallet_service.models import TransactionType
from services.wallet_service.schemas import (
    TransactionListResponse,
    TransactionResponse,
    TransferRequest,
    TransferResponse,
    WalletResponse,
)
from services.wallet_service.services.wallet_ops import (
    create_wallet,
    find_wallet_by_address,
    get_wallet_by_owner,
    list_transactions,
    transfer_between_wallets,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/wallet", tags=["wallet"])


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------


@router.get("/me", response_model=WalletResponse)
async def get_my_wallet(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get current user's wallet (balance, address, status)."""
    return await get_wallet_by_owner(db, current_user.user_id)


@router.post(
    "/create", response_model=WalletResponse, status_code=status.HTTP_201_CREATED
)
async def create_my_wallet(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create wallet for current user. Returns the existing one if already open."""
    return await create_wallet(
        db, owner_id=current_user.user_id, actor=current_user.user_id
    )


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@router.get("/me/transactions", response_model=TransactionListResponse)
async def get_my_transactions(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    transaction_type: Optional[TransactionType] = None,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Paginated ledger history, newest first."""
    wallet = await get_wallet_by_owner(db, current_user.user_id)
    transactions, total = await list_transactions(
        db,
        wallet.id,
        skip=skip,
        limit=limit,
        transaction_type=transaction_type,
    )
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("/transfer", response_model=TransferResponse)
async def transfer(
    body: TransferRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Move funds from the caller's wallet to another wallet address."""
    source = await get_wallet_by_owner(db, current_user.user_id)
    target = await find_wallet_by_address(db, body.to_address)
    if not target:
        raise NotFound("Recipient wallet not found", address=body.to_address)

    outgoing, incoming = await transfer_between_wallets(
        db,
        from_wallet_id=source.id,
        to_wallet_id=target.id,
        amount=body.amount,
        reference=body.reference,
        description=body.description,
        initiated_by=current_user.user_id,
    )
    return TransferResponse(
        debit=TransactionResponse.model_validate(outgoing),
        credit=TransactionResponse.model_validate(incoming),
    )
