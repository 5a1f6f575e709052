"""Mint orchestration: reserve locally, submit to custody, confirm.

The fraction is reserved (pending token, committed) before the provider is
called, and the provider call happens with no transaction open. A provider
that confirms synchronously (sandbox) activates the token right away;
otherwise it stays pending until the ``token.minted`` webhook arrives.
"""

import asyncio
import uuid
from typing import Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.ownership_service.models import OwnershipToken
from services.ownership_service.services import registry
from services.payouts_service.services.custody import (
    CustodyError,
    CustodyProvider,
    MintRequest,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
settings = get_settings()


async def mint_and_submit(
    db: AsyncSession,
    provider: CustodyProvider,
    *,
    asset_id: uuid.UUID,
    owner_id: str,
    fraction,
    investment_amount: int,
    actor: Optional[str] = None,
) -> OwnershipToken:
    asset = await registry.get_asset(db, asset_id)
    token = await registry.mint(
        db,
        asset_id=asset_id,
        owner_id=owner_id,
        fraction=fraction,
        investment_amount=investment_amount,
        actor=actor,
        chain=provider.chain,
    )

    request = MintRequest(
        token_id=token.token_id,
        asset_ref=asset.external_ref or str(asset.id),
        owner_id=owner_id,
        fraction=token.fraction_owned,
        investment_amount=investment_amount,
    )
    try:
        result = await asyncio.wait_for(
            provider.mint_token(request), timeout=settings.CUSTODY_TIMEOUT_SECONDS
        )
    except (asyncio.TimeoutError, CustodyError) as e:
        logger.warning(
            "Mint submission for token %s not confirmed (%s); left pending",
            token.token_id,
            e,
        )
        return await registry.get_token(db, token.id)

    if not result.confirmed:
        logger.info(
            "Mint for token %s submitted (%s); awaiting confirmation",
            token.token_id,
            result.status,
        )
        return await registry.get_token(db, token.id)

    confirmation = await registry.confirm(
        db,
        token_pk=token.id,
        tx_hash=result.tx_hash,
        chain=result.chain,
        metadata_hash=result.metadata_hash,
        actor=actor,
    )
    return confirmation.token
