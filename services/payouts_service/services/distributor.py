"""Payout Distributor: split an amount across an asset's active owners.

Flow:
1. One transaction records the batch, one payout per active token and a
   pending wallet credit for each payout.
2. The custody provider is called with no transaction open, under a
   timeout. On timeout or error everything stays pending; the
   ``payout.completed`` webhook settles it later.
3. If the provider confirms synchronously (sandbox), a second transaction
   settles each payout.

Shares are ``round_half_up(fraction / Σ fractions * amount)``. Rounding
residue is not redistributed, and an unsold fraction simply lowers the
sum of fractions. An owner without a wallet gets a failed payout and the
rest of the batch continues.
"""

import asyncio
import secrets
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from libs.audit import record_audit
from libs.auth.models import ROLE_OPERATOR, AuthUser
from libs.common.config import get_settings
from libs.common.currency import round_minor
from libs.common.errors import Unauthorized, ValidationFailed
from libs.common.logging import get_logger
from services.ownership_service.models import Asset, OwnershipToken
from services.ownership_service.services.registry import (
    active_tokens_for_asset,
    get_asset,
)
from services.payouts_service.models import (
    Payout,
    PayoutBatch,
    PayoutBatchStatus,
    PayoutStatus,
)
from services.payouts_service.services.custody import (
    CustodyError,
    CustodyProvider,
    PayoutInstruction,
    PayoutRequest,
)
from services.payouts_service.services.notifications import notify_batch_outcome
from services.payouts_service.services.settlement import (
    refresh_batch_status,
    settle_payout,
)
from services.wallet_service.models import (
    TransactionDirection,
    TransactionType,
    WalletStatus,
)
from services.wallet_service.services.wallet_ops import (
    find_wallet_by_owner,
    record_pending,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
settings = get_settings()


@dataclass
class Distribution:
    payout_id: uuid.UUID
    owner_id: str
    token_id: Optional[str]
    amount: int
    status: PayoutStatus
    failure_reason: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "payout_id": str(self.payout_id),
            "owner_id": self.owner_id,
            "token_id": self.token_id,
            "amount": self.amount,
            "status": self.status.value,
            "failure_reason": self.failure_reason,
        }


@dataclass
class DistributionResult:
    batch: PayoutBatch
    distributions: list[Distribution] = field(default_factory=list)

    @property
    def payout_batch_id(self) -> uuid.UUID:
        return self.batch.id

    @property
    def external_tx_hash(self) -> Optional[str]:
        return self.batch.external_tx_hash


def compute_share(fraction: Decimal, total_ownership: Decimal, total_amount: int) -> int:
    return round_minor(Decimal(fraction) / Decimal(total_ownership) * total_amount)


def ensure_can_distribute(caller: AuthUser, asset: Asset) -> None:
    if caller.is_admin:
        return
    if caller.role == ROLE_OPERATOR and asset.operator_id == caller.user_id:
        return
    logger.warning(
        "Distribution for asset %s refused for %s (role=%s)",
        asset.id,
        caller.user_id,
        caller.role,
    )
    raise Unauthorized(
        "Caller may not distribute payouts for this asset", asset_id=str(asset.id)
    )


def generate_batch_reference() -> str:
    return "PB_" + secrets.token_hex(10).upper()


async def _stage_payout(
    db: AsyncSession,
    batch: PayoutBatch,
    token: OwnershipToken,
    share: int,
) -> Payout:
    payout = Payout(
        batch_id=batch.id,
        owner_id=token.owner_id,
        token_id=token.id,
        amount=share,
        period=batch.period,
        description=batch.description,
        status=PayoutStatus.PENDING,
    )
    wallet = await find_wallet_by_owner(db, token.owner_id)
    if wallet is None or wallet.status == WalletStatus.CLOSED:
        payout.status = PayoutStatus.FAILED
        payout.failure_reason = "wallet not found" if wallet is None else "wallet closed"
        db.add(payout)
        logger.warning(
            "Payout of %d for token %s skipped: %s",
            share,
            token.token_id,
            payout.failure_reason,
        )
        return payout

    payout.wallet_id = wallet.id
    if share == 0:
        # Nothing to credit; the owner's share rounded away.
        payout.status = PayoutStatus.COMPLETED
        db.add(payout)
        return payout

    txn = await record_pending(
        db,
        wallet_id=wallet.id,
        direction=TransactionDirection.CREDIT,
        amount=share,
        reference=f"payout:{batch.reference}:{token.token_id}",
        transaction_type=TransactionType.PAYOUT,
        description=f"Payout {batch.period or batch.reference}",
        service_source="payouts_service",
        initiated_by=batch.distributed_by,
        metadata={"batch": batch.reference, "token_id": token.token_id},
        commit=False,
    )
    payout.wallet_transaction_id = txn.id
    db.add(payout)
    return payout


async def distribute(
    db: AsyncSession,
    provider: CustodyProvider,
    *,
    asset_id: uuid.UUID,
    total_amount: int,
    caller: AuthUser,
    period: Optional[str] = None,
    description: Optional[str] = None,
) -> DistributionResult:
    if total_amount <= 0:
        raise ValidationFailed("Total amount must be positive", total_amount=total_amount)

    asset = await get_asset(db, asset_id)
    ensure_can_distribute(caller, asset)

    tokens = await active_tokens_for_asset(db, asset_id)
    if not tokens:
        raise ValidationFailed("Asset has no active owners", asset_id=str(asset_id))
    total_ownership = sum((t.fraction_owned for t in tokens), Decimal("0"))

    # --- Transaction 1: batch, payouts, pending credits -------------------
    batch = PayoutBatch(
        reference=generate_batch_reference(),
        asset_id=asset_id,
        total_amount=total_amount,
        currency=settings.DEFAULT_CURRENCY,
        period=period,
        description=description,
        distributed_by=caller.user_id,
        status=PayoutBatchStatus.PROCESSING,
    )
    db.add(batch)
    await db.flush()

    payouts: list[tuple[Payout, OwnershipToken]] = []
    try:
        for token in tokens:
            share = compute_share(token.fraction_owned, total_ownership, total_amount)
            payout = await _stage_payout(db, batch, token, share)
            payouts.append((payout, token))

        batch.distributed_amount = sum(
            p.amount for p, _ in payouts if p.status != PayoutStatus.FAILED
        )
        await db.flush()
        batch = await refresh_batch_status(db, batch.id)
        record_audit(
            db,
            entity_type="payout_batch",
            entity_id=batch.id,
            action="distribute",
            actor=caller.user_id,
            after={
                "asset_id": asset_id,
                "total_amount": total_amount,
                "distributed_amount": batch.distributed_amount,
                "total_ownership": total_ownership,
                "payouts": len(payouts),
                "failed": [
                    {"owner_id": p.owner_id, "reason": p.failure_reason}
                    for p, _ in payouts
                    if p.status == PayoutStatus.FAILED
                ],
            },
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Payout batch %s for asset %s: %d of %d across %d owners (%s%% owned)",
        batch.reference,
        asset_id,
        batch.distributed_amount,
        total_amount,
        len(payouts),
        total_ownership,
    )

    pending = [(p, t) for p, t in payouts if p.status == PayoutStatus.PENDING]
    if pending:
        await _submit_to_custody(db, provider, batch, asset, pending, caller)

    batch = await refresh_batch_status(db, batch.id)
    await db.commit()

    distributions = []
    for payout, token in payouts:
        await db.refresh(payout)
        distributions.append(
            Distribution(
                payout_id=payout.id,
                owner_id=payout.owner_id,
                token_id=token.token_id,
                amount=payout.amount,
                status=payout.status,
                failure_reason=payout.failure_reason,
            )
        )

    await notify_batch_outcome(batch, [d.as_dict() for d in distributions])
    return DistributionResult(batch=batch, distributions=distributions)


async def _submit_to_custody(
    db: AsyncSession,
    provider: CustodyProvider,
    batch: PayoutBatch,
    asset: Asset,
    pending: list[tuple[Payout, OwnershipToken]],
    caller: AuthUser,
) -> None:
    request = PayoutRequest(
        reference=batch.reference,
        asset_ref=asset.external_ref or str(asset.id),
        currency=batch.currency,
        distributions=[
            PayoutInstruction(
                owner_id=payout.owner_id,
                token_id=token.token_id,
                wallet_address=None,
                amount=payout.amount,
            )
            for payout, token in pending
        ],
    )
    try:
        result = await asyncio.wait_for(
            provider.initiate_payout(request),
            timeout=settings.CUSTODY_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "Custody payout for batch %s timed out; payouts left pending",
            batch.reference,
        )
        return
    except CustodyError as e:
        logger.warning(
            "Custody payout for batch %s failed (%s); payouts left pending",
            batch.reference,
            e.message,
        )
        return

    # --- Transaction 2: record the provider's answer ----------------------
    try:
        if result.tx_hash:
            batch.external_tx_hash = result.tx_hash
        if result.completed:
            for payout, _token in pending:
                await settle_payout(
                    db, payout.id, tx_hash=result.tx_hash, actor=caller.user_id
                )
        await db.flush()
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Custody answered batch %s: %s (tx=%s)",
        batch.reference,
        result.status,
        result.tx_hash,
    )


async def get_batch(db: AsyncSession, batch_id: uuid.UUID) -> Optional[PayoutBatch]:
    result = await db.execute(select(PayoutBatch).where(PayoutBatch.id == batch_id))
    return result.scalar_one_or_none()


async def find_batch_by_reference(
    db: AsyncSession, reference: str
) -> Optional[PayoutBatch]:
    result = await db.execute(
        select(PayoutBatch).where(PayoutBatch.reference == reference)
    )
    return result.scalar_one_or_none()


async def list_batch_payouts(db: AsyncSession, batch_id: uuid.UUID) -> list[Payout]:
    result = await db.execute(
        select(Payout)
        .where(Payout.batch_id == batch_id)
        .order_by(Payout.created_at, Payout.id)
    )
    return list(result.scalars().all())


async def list_owner_payouts(
    db: AsyncSession, owner_id: str, *, skip: int = 0, limit: int = 50
) -> list[Payout]:
    result = await db.execute(
        select(Payout)
        .where(Payout.owner_id == owner_id)
        .order_by(Payout.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())
