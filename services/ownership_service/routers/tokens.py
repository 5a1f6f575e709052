"""Ownership token endpoints."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from libs.auth.dependencies import (
    get_current_user,
    require_admin,
    require_admin_or_service,
)
from libs.auth.models import AuthUser
from libs.common.errors import Conflict
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.ownership_service.schemas import (
    ConfirmTokenRequest,
    MintTokenRequest,
    PortfolioResponse,
    RevokeTokenRequest,
    TokenResponse,
    TransferTokenRequest,
)
from services.ownership_service.services import registry
from services.ownership_service.services.minting import mint_and_submit
from services.payouts_service.services.custody import (
    CustodyProvider,
    get_custody_provider,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/tokens", tags=["tokens"])


@router.post("/mint", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def mint_token(
    body: MintTokenRequest,
    caller: AuthUser = Depends(require_admin_or_service),
    provider: CustodyProvider = Depends(get_custody_provider),
    db: AsyncSession = Depends(get_async_db),
):
    """Allocate a fraction of an asset to an investor.

    409 with ``remaining`` when the fraction exceeds what is left.
    """
    return await mint_and_submit(
        db,
        provider,
        asset_id=body.asset_id,
        owner_id=body.owner_id,
        fraction=body.fraction,
        investment_amount=body.investment_amount,
        actor=caller.user_id,
    )


@router.get("/portfolio/me", response_model=PortfolioResponse)
async def get_my_portfolio(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Investment, value and returns across the caller's tokens, by chain."""
    summary = await registry.portfolio_summary(db, current_user.user_id)
    return PortfolioResponse.model_validate(summary)


@router.get("/{token_pk}", response_model=TokenResponse)
async def get_token(
    token_pk: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    token = await registry.get_token(db, token_pk)
    if token.owner_id != current_user.user_id and not (
        current_user.is_admin or current_user.is_service
    ):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Token not found"
        )
    return token


@router.post("/{token_pk}/confirm", response_model=TokenResponse)
async def confirm_token(
    token_pk: uuid.UUID,
    body: ConfirmTokenRequest,
    caller: AuthUser = Depends(require_admin_or_service),
    db: AsyncSession = Depends(get_async_db),
):
    """Attach the on-chain hash. Idempotent; a different hash is a 409."""
    confirmation = await registry.confirm(
        db,
        token_pk=token_pk,
        tx_hash=body.tx_hash,
        chain=body.chain,
        metadata_hash=body.metadata_hash,
        actor=caller.user_id,
    )
    if confirmation.outcome == registry.ConfirmOutcome.CONFLICT:
        raise Conflict(
            "Token already confirmed with a different tx_hash",
            token_id=confirmation.token.token_id,
            tx_hash=confirmation.token.tx_hash,
        )
    return confirmation.token


@router.post("/{token_pk}/transfer", response_model=TokenResponse)
async def transfer_token(
    token_pk: uuid.UUID,
    body: TransferTokenRequest,
    caller: AuthUser = Depends(require_admin_or_service),
    db: AsyncSession = Depends(get_async_db),
):
    """Reassign the token to a new owner."""
    return await registry.transfer_owner(
        db, token_pk=token_pk, new_owner_id=body.new_owner_id, actor=caller.user_id
    )


@router.post("/{token_pk}/revoke", response_model=TokenResponse)
async def revoke_token(
    token_pk: uuid.UUID,
    body: RevokeTokenRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Revoke a token and release its fraction."""
    return await registry.revoke(
        db, token_pk=token_pk, actor=admin.user_id, reason=body.reason
    )
