"""Internal service-to-service wallet endpoints.

These endpoints are called by collaborator services (onboarding, payment
funding, driver earnings) via service-role JWT, not by clients directly.
"""

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import require_service_role
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.wallet_service.models import WalletStatus
from services.wallet_service.schemas import (
    BalanceResponse,
    CreditRequest,
    DebitRequest,
    InternalDebitCreditResponse,
    WalletCreateRequest,
    WalletResponse,
)
from services.wallet_service.services.wallet_ops import (
    create_wallet,
    credit_wallet,
    debit_wallet,
    get_wallet_by_owner,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/internal/wallet", tags=["internal-wallet"])


@router.post(
    "/create", response_model=WalletResponse, status_code=status.HTTP_201_CREATED
)
async def internal_create_wallet(
    body: WalletCreateRequest,
    service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Open a wallet for a user (idempotent)."""
    return await create_wallet(
        db,
        owner_id=body.owner_id,
        currency=body.currency,
        custody_ref=body.custody_ref,
        status=WalletStatus.PENDING if body.pending_custody else WalletStatus.ACTIVE,
        actor=service.user_id,
    )


@router.post("/debit", response_model=InternalDebitCreditResponse)
async def internal_debit(
    body: DebitRequest,
    service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Debit a wallet. 409 with the current balance if it does not cover the amount."""
    txn = await debit_wallet(
        db,
        wallet_id=body.wallet_id,
        amount=body.amount,
        reference=body.reference,
        transaction_type=body.transaction_type,
        description=body.description,
        service_source=body.service_source,
        initiated_by=service.user_id,
        metadata=body.metadata,
    )
    return InternalDebitCreditResponse(
        success=True, transaction_id=txn.id, balance_after=txn.balance_after
    )


@router.post("/credit", response_model=InternalDebitCreditResponse)
async def internal_credit(
    body: CreditRequest,
    service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Credit a wallet (funding, earnings, refunds)."""
    txn = await credit_wallet(
        db,
        wallet_id=body.wallet_id,
        amount=body.amount,
        reference=body.reference,
        transaction_type=body.transaction_type,
        description=body.description,
        service_source=body.service_source,
        initiated_by=service.user_id,
        metadata=body.metadata,
    )
    return InternalDebitCreditResponse(
        success=True, transaction_id=txn.id, balance_after=txn.balance_after
    )


@router.get("/balance/{owner_id}", response_model=BalanceResponse)
async def internal_get_balance(
    owner_id: str,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Current cached balance for an owner's wallet."""
    wallet = await get_wallet_by_owner(db, owner_id)
    return BalanceResponse(
        wallet_id=wallet.id,
        owner_id=wallet.owner_id,
        balance=wallet.balance,
        currency=wallet.currency,
        status=wallet.status,
    )
