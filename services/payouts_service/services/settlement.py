"""Payout settlement shared by the distributor and the webhook reconciler.

A payout leaves ``pending`` exactly once: the status change is a
conditional UPDATE, and only the caller that wins it applies the wallet
credit and the token returns. Whoever confirms second (sandbox answer vs.
webhook, or a provider retry) finds nothing to claim and does nothing.

None of these functions commit; the caller owns the transaction.
"""

import uuid
from typing import Optional

from libs.audit import record_audit
from libs.common.datetime_utils import utc_now
from libs.common.errors import NotFound
from libs.common.logging import get_logger
from services.ownership_service.services.registry import add_returns
from services.payouts_service.models import (
    Payout,
    PayoutBatch,
    PayoutBatchStatus,
    PayoutStatus,
)
from services.wallet_service.models import WalletStatus
from services.wallet_service.services.wallet_ops import (
    complete_pending,
    fail_pending,
    get_wallet_by_id,
)
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def get_payout(db: AsyncSession, payout_id: uuid.UUID) -> Optional[Payout]:
    result = await db.execute(
        select(Payout)
        .where(Payout.id == payout_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def settle_payout(
    db: AsyncSession,
    payout_id: uuid.UUID,
    *,
    tx_hash: str,
    actor: Optional[str] = None,
) -> bool:
    """Complete a pending payout and credit its owner.

    Returns False (and changes nothing) if the payout was already settled.
    A payout whose wallet is closed cannot be credited; it is failed on its
    own and False is returned, so the rest of its batch still settles.
    """
    payout = await get_payout(db, payout_id)
    if payout is None:
        raise NotFound("Payout not found", payout_id=str(payout_id))
    if payout.status == PayoutStatus.PENDING and payout.wallet_transaction_id:
        wallet = await get_wallet_by_id(db, payout.wallet_id)
        if wallet.status == WalletStatus.CLOSED:
            await fail_payout(db, payout_id, reason="wallet closed", actor=actor)
            return False

    claimed = await db.execute(
        update(Payout)
        .where(Payout.id == payout_id, Payout.status == PayoutStatus.PENDING)
        .values(
            status=PayoutStatus.COMPLETED,
            tx_hash=tx_hash,
            completed_at=utc_now(),
            updated_at=utc_now(),
        )
        .returning(Payout.id)
        .execution_options(synchronize_session=False)
    )
    if claimed.scalar_one_or_none() is None:
        logger.info("Payout %s already settled; tx=%s ignored", payout_id, tx_hash)
        return False

    payout = await get_payout(db, payout_id)
    if payout.wallet_transaction_id:
        await complete_pending(db, payout.wallet_transaction_id, commit=False)
    if payout.token_id:
        await add_returns(db, payout.token_id, payout.amount)

    record_audit(
        db,
        entity_type="payout",
        entity_id=payout.id,
        action="settle",
        actor=actor,
        before={"status": PayoutStatus.PENDING},
        after={"status": PayoutStatus.COMPLETED, "tx_hash": tx_hash},
    )
    logger.info(
        "Settled payout %s: %d to %s (tx=%s)",
        payout.id,
        payout.amount,
        payout.owner_id,
        tx_hash,
    )
    return True


async def fail_payout(
    db: AsyncSession,
    payout_id: uuid.UUID,
    *,
    reason: str,
    actor: Optional[str] = None,
) -> bool:
    """Mark a pending payout failed. No credit is ever applied for it."""
    claimed = await db.execute(
        update(Payout)
        .where(Payout.id == payout_id, Payout.status == PayoutStatus.PENDING)
        .values(status=PayoutStatus.FAILED, failure_reason=reason, updated_at=utc_now())
        .returning(Payout.id)
        .execution_options(synchronize_session=False)
    )
    if claimed.scalar_one_or_none() is None:
        return False

    payout = await get_payout(db, payout_id)
    if payout.wallet_transaction_id:
        await fail_pending(db, payout.wallet_transaction_id, reason=reason, commit=False)
    record_audit(
        db,
        entity_type="payout",
        entity_id=payout.id,
        action="fail",
        actor=actor,
        before={"status": PayoutStatus.PENDING},
        after={"status": PayoutStatus.FAILED},
        reason=reason,
    )
    logger.warning("Payout %s to %s failed: %s", payout.id, payout.owner_id, reason)
    return True


def batch_status_for(counts: dict[PayoutStatus, int]) -> PayoutBatchStatus:
    pending = counts.get(PayoutStatus.PENDING, 0)
    completed = counts.get(PayoutStatus.COMPLETED, 0)
    failed = counts.get(PayoutStatus.FAILED, 0)
    if pending:
        return PayoutBatchStatus.PENDING
    if failed and not completed:
        return PayoutBatchStatus.FAILED
    if failed:
        return PayoutBatchStatus.PARTIALLY_COMPLETED
    return PayoutBatchStatus.COMPLETED


async def refresh_batch_status(db: AsyncSession, batch_id: uuid.UUID) -> PayoutBatch:
    """Derive the batch status from its payouts."""
    rows = await db.execute(
        select(Payout.status, func.count())
        .where(Payout.batch_id == batch_id)
        .group_by(Payout.status)
    )
    counts = {status: count for status, count in rows.all()}

    result = await db.execute(
        select(PayoutBatch)
        .where(PayoutBatch.id == batch_id)
        .execution_options(populate_existing=True)
    )
    batch = result.scalar_one()
    new_status = batch_status_for(counts)
    if new_status != batch.status:
        batch.status = new_status
        if new_status in (
            PayoutBatchStatus.COMPLETED,
            PayoutBatchStatus.PARTIALLY_COMPLETED,
        ):
            batch.completed_at = utc_now()
        await db.flush()
    return batch
