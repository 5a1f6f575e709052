"""Core wallet operations: atomic debit/credit over an append-only ledger.

Every balance change is a single conditional ``UPDATE ... RETURNING`` on the
wallet row. The row lock it takes is held until the caller's transaction
commits, so the ledger entry written next to it commits or rolls back with
it, and two writers on the same wallet are serialized by the database rather
than by a read-modify-write in application memory.

Functions that take ``commit=True`` own their transaction. Pass
``commit=False`` to compose several ledger changes (a transfer, a webhook
delivery, a payout batch) into one atomic unit; the caller then commits or
rolls back.
"""

import secrets
import uuid
from dataclasses import dataclass
from typing import Optional

from libs.audit import record_audit
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    DuplicateTransaction,
    InsufficientBalance,
    LedgerError,
    NotFound,
    ValidationFailed,
    WalletNotActive,
)
from libs.common.logging import get_logger
from services.wallet_service.models import (
    TransactionDirection,
    TransactionStatus,
    TransactionType,
    Wallet,
    WalletStatus,
    WalletTransaction,
)
from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
settings = get_settings()


# ---------------------------------------------------------------------------
# Wallet creation and lookup
# ---------------------------------------------------------------------------


def generate_wallet_address() -> str:
    return "0x" + secrets.token_hex(20)


async def create_wallet(
    db: AsyncSession,
    *,
    owner_id: str,
    currency: Optional[str] = None,
    address: Optional[str] = None,
    custody_ref: Optional[str] = None,
    status: WalletStatus = WalletStatus.ACTIVE,
    actor: Optional[str] = None,
    commit: bool = True,
) -> Wallet:
    """Create the wallet for an owner.

    Idempotent: returns the existing wallet if the owner already has one.
    """
    existing = await find_wallet_by_owner(db, owner_id)
    if existing:
        return existing

    wallet = Wallet(
        owner_id=owner_id,
        address=address or generate_wallet_address(),
        custody_ref=custody_ref,
        balance=0,
        currency=currency or settings.DEFAULT_CURRENCY,
        status=status,
    )
    db.add(wallet)
    await db.flush()
    record_audit(
        db,
        entity_type="wallet",
        entity_id=wallet.id,
        action="create",
        actor=actor,
        after={"owner_id": owner_id, "address": wallet.address, "status": status},
    )

    if commit:
        try:
            await db.commit()
        except IntegrityError:
            # Concurrent creation for the same owner won the unique index.
            await db.rollback()
            return await get_wallet_by_owner(db, owner_id)

    logger.info(
        "Created wallet %s for owner %s (address=%s)",
        wallet.id,
        owner_id,
        wallet.address,
    )
    return wallet


async def find_wallet_by_owner(db: AsyncSession, owner_id: str) -> Optional[Wallet]:
    result = await db.execute(
        select(Wallet)
        .where(Wallet.owner_id == owner_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_wallet_by_address(db: AsyncSession, address: str) -> Optional[Wallet]:
    result = await db.execute(
        select(Wallet)
        .where(Wallet.address == address)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_wallet_by_owner(db: AsyncSession, owner_id: str) -> Wallet:
    """Get wallet by owner. Raises NotFound."""
    wallet = await find_wallet_by_owner(db, owner_id)
    if not wallet:
        raise NotFound("Wallet not found", owner_id=owner_id)
    return wallet


async def get_wallet_by_id(db: AsyncSession, wallet_id: uuid.UUID) -> Wallet:
    """Get wallet by wallet ID. Raises NotFound."""
    result = await db.execute(
        select(Wallet)
        .where(Wallet.id == wallet_id)
        .execution_options(populate_existing=True)
    )
    wallet = result.scalar_one_or_none()
    if not wallet:
        raise NotFound("Wallet not found", wallet_id=str(wallet_id))
    return wallet


# ---------------------------------------------------------------------------
# Balance primitives
# ---------------------------------------------------------------------------


async def _apply_balance_change(
    db: AsyncSession,
    wallet_id: uuid.UUID,
    direction: TransactionDirection,
    amount: int,
) -> tuple[int, int]:
    """Atomically move the cached balance. Returns ``(before, after)``.

    Debits only match an active wallet holding at least ``amount``; credits
    match any wallet that is not closed (frozen wallets still receive
    refunds and payouts).
    """
    stmt = update(Wallet).where(Wallet.id == wallet_id)
    if direction == TransactionDirection.CREDIT:
        stmt = stmt.where(Wallet.status != WalletStatus.CLOSED).values(
            balance=Wallet.balance + amount,
            lifetime_credited=Wallet.lifetime_credited + amount,
            version=Wallet.version + 1,
            updated_at=utc_now(),
        )
    else:
        stmt = stmt.where(
            Wallet.status == WalletStatus.ACTIVE,
            Wallet.balance >= amount,
        ).values(
            balance=Wallet.balance - amount,
            lifetime_debited=Wallet.lifetime_debited + amount,
            version=Wallet.version + 1,
            updated_at=utc_now(),
        )

    result = await db.execute(
        stmt.returning(Wallet.balance).execution_options(synchronize_session=False)
    )
    balance_after = result.scalar_one_or_none()
    if balance_after is not None:
        if direction == TransactionDirection.CREDIT:
            return balance_after - amount, balance_after
        return balance_after + amount, balance_after

    # Nothing matched: work out which guard refused the change.
    wallet = await get_wallet_by_id(db, wallet_id)
    if direction == TransactionDirection.CREDIT or wallet.status != WalletStatus.ACTIVE:
        raise WalletNotActive(
            f"Wallet is {wallet.status.value}", wallet_id=str(wallet_id)
        )
    raise InsufficientBalance(balance=wallet.balance, requested=amount)


async def _find_entry(
    db: AsyncSession,
    wallet_id: uuid.UUID,
    direction: TransactionDirection,
    reference: str,
) -> Optional[WalletTransaction]:
    result = await db.execute(
        select(WalletTransaction)
        .where(
            WalletTransaction.wallet_id == wallet_id,
            WalletTransaction.direction == direction,
            WalletTransaction.reference == reference,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _replayed(existing: WalletTransaction, amount: int) -> WalletTransaction:
    """Same wallet, direction and reference seen before."""
    if existing.amount != amount:
        raise DuplicateTransaction(
            "Reference already used with a different amount",
            reference=existing.reference,
            existing_transaction_id=str(existing.id),
            existing_amount=existing.amount,
            requested=amount,
        )
    logger.warning(
        "Duplicate %s submission for wallet %s reference=%s -> txn=%s (not re-applied)",
        existing.direction.value,
        existing.wallet_id,
        existing.reference,
        existing.id,
    )
    return existing


def _validate_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValidationFailed("Amount must be a positive number of minor units", amount=amount)


async def _post_entry(
    db: AsyncSession,
    *,
    wallet_id: uuid.UUID,
    direction: TransactionDirection,
    amount: int,
    reference: str,
    transaction_type: TransactionType,
    description: str,
    service_source: Optional[str],
    initiated_by: Optional[str],
    metadata: Optional[dict],
) -> WalletTransaction:
    _validate_amount(amount)
    if not reference:
        raise ValidationFailed("A reference is required for every ledger entry")

    existing = await _find_entry(db, wallet_id, direction, reference)
    if existing:
        return _replayed(existing, amount)

    balance_before, balance_after = await _apply_balance_change(
        db, wallet_id, direction, amount
    )
    now = utc_now()
    txn = WalletTransaction(
        wallet_id=wallet_id,
        reference=reference,
        transaction_type=transaction_type,
        direction=direction,
        amount=amount,
        balance_before=balance_before,
        balance_after=balance_after,
        status=TransactionStatus.COMPLETED,
        description=description,
        service_source=service_source,
        initiated_by=initiated_by,
        txn_metadata=metadata,
        completed_at=now,
    )
    db.add(txn)
    await db.flush()

    logger.info(
        "%s %d %s wallet %s (ref=%s), balance %d→%d",
        direction.value.capitalize(),
        amount,
        "to" if direction == TransactionDirection.CREDIT else "from",
        wallet_id,
        reference,
        balance_before,
        balance_after,
    )
    return txn


async def _commit_entry(
    db: AsyncSession,
    txn: WalletTransaction,
    *,
    wallet_id: uuid.UUID,
    direction: TransactionDirection,
    reference: str,
    amount: int,
) -> WalletTransaction:
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent submission with the same reference committed first.
        await db.rollback()
        existing = await _find_entry(db, wallet_id, direction, reference)
        if existing is None:
            raise
        return _replayed(existing, amount)
    return txn


# ---------------------------------------------------------------------------
# Credit / debit / transfer
# ---------------------------------------------------------------------------


async def credit_wallet(
    db: AsyncSession,
    *,
    wallet_id: uuid.UUID,
    amount: int,
    reference: str,
    transaction_type: TransactionType = TransactionType.DEPOSIT,
    description: str = "Wallet credit",
    service_source: Optional[str] = None,
    initiated_by: Optional[str] = None,
    metadata: Optional[dict] = None,
    commit: bool = True,
) -> WalletTransaction:
    """Record a completed credit and increment the balance atomically."""
    try:
        txn = await _post_entry(
            db,
            wallet_id=wallet_id,
            direction=TransactionDirection.CREDIT,
            amount=amount,
            reference=reference,
            transaction_type=transaction_type,
            description=description,
            service_source=service_source,
            initiated_by=initiated_by,
            metadata=metadata,
        )
    except LedgerError:
        if commit:
            await db.rollback()
        raise
    if not commit:
        return txn
    return await _commit_entry(
        db,
        txn,
        wallet_id=wallet_id,
        direction=TransactionDirection.CREDIT,
        reference=reference,
        amount=amount,
    )


async def debit_wallet(
    db: AsyncSession,
    *,
    wallet_id: uuid.UUID,
    amount: int,
    reference: str,
    transaction_type: TransactionType = TransactionType.WITHDRAWAL,
    description: str = "Wallet debit",
    service_source: Optional[str] = None,
    initiated_by: Optional[str] = None,
    metadata: Optional[dict] = None,
    commit: bool = True,
) -> WalletTransaction:
    """Record a completed debit if the balance covers it.

    Raises InsufficientBalance with nothing written when it does not.
    """
    try:
        txn = await _post_entry(
            db,
            wallet_id=wallet_id,
            direction=TransactionDirection.DEBIT,
            amount=amount,
            reference=reference,
            transaction_type=transaction_type,
            description=description,
            service_source=service_source,
            initiated_by=initiated_by,
            metadata=metadata,
        )
    except LedgerError:
        if commit:
            await db.rollback()
        raise
    if not commit:
        return txn
    return await _commit_entry(
        db,
        txn,
        wallet_id=wallet_id,
        direction=TransactionDirection.DEBIT,
        reference=reference,
        amount=amount,
    )


async def transfer_between_wallets(
    db: AsyncSession,
    *,
    from_wallet_id: uuid.UUID,
    to_wallet_id: uuid.UUID,
    amount: int,
    reference: str,
    description: Optional[str] = None,
    initiated_by: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> tuple[WalletTransaction, WalletTransaction]:
    """Debit one wallet and credit another in a single transaction.

    If the debit is refused no credit is created.
    """
    if from_wallet_id == to_wallet_id:
        raise ValidationFailed("Cannot transfer to the same wallet")

    try:
        outgoing = await debit_wallet(
            db,
            wallet_id=from_wallet_id,
            amount=amount,
            reference=reference,
            transaction_type=TransactionType.TRANSFER_OUT,
            description=description or f"Transfer to {to_wallet_id}",
            service_source="wallet_service",
            initiated_by=initiated_by,
            metadata=metadata,
            commit=False,
        )
        incoming = await credit_wallet(
            db,
            wallet_id=to_wallet_id,
            amount=amount,
            reference=reference,
            transaction_type=TransactionType.TRANSFER_IN,
            description=description or f"Transfer from {from_wallet_id}",
            service_source="wallet_service",
            initiated_by=initiated_by,
            metadata=metadata,
            commit=False,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Transferred %d from wallet %s to wallet %s (ref=%s)",
        amount,
        from_wallet_id,
        to_wallet_id,
        reference,
    )
    return outgoing, incoming


# ---------------------------------------------------------------------------
# Pending entries
# ---------------------------------------------------------------------------


async def record_pending(
    db: AsyncSession,
    *,
    wallet_id: uuid.UUID,
    direction: TransactionDirection,
    amount: int,
    reference: str,
    transaction_type: TransactionType,
    description: str,
    service_source: Optional[str] = None,
    initiated_by: Optional[str] = None,
    metadata: Optional[dict] = None,
    commit: bool = True,
) -> WalletTransaction:
    """Stage an entry that has no balance effect until it completes."""
    _validate_amount(amount)
    existing = await _find_entry(db, wallet_id, direction, reference)
    if existing:
        return _replayed(existing, amount)

    await get_wallet_by_id(db, wallet_id)
    txn = WalletTransaction(
        wallet_id=wallet_id,
        reference=reference,
        transaction_type=transaction_type,
        direction=direction,
        amount=amount,
        status=TransactionStatus.PENDING,
        description=description,
        service_source=service_source,
        initiated_by=initiated_by,
        txn_metadata=metadata,
    )
    db.add(txn)
    await db.flush()
    if commit:
        await db.commit()
    logger.info(
        "Pending %s %d for wallet %s (ref=%s)",
        direction.value,
        amount,
        wallet_id,
        reference,
    )
    return txn


async def _claim_pending(
    db: AsyncSession, txn_id: uuid.UUID, new_status: TransactionStatus, **values
) -> bool:
    """Move a pending entry to ``new_status``. False if it already left pending."""
    result = await db.execute(
        update(WalletTransaction)
        .where(
            WalletTransaction.id == txn_id,
            WalletTransaction.status == TransactionStatus.PENDING,
        )
        .values(status=new_status, updated_at=utc_now(), **values)
        .returning(WalletTransaction.id)
        .execution_options(synchronize_session=False)
    )
    return result.scalar_one_or_none() is not None


async def _reload_entry(db: AsyncSession, txn_id: uuid.UUID) -> WalletTransaction:
    result = await db.execute(
        select(WalletTransaction)
        .where(WalletTransaction.id == txn_id)
        .execution_options(populate_existing=True)
    )
    txn = result.scalar_one_or_none()
    if not txn:
        raise NotFound("Transaction not found", transaction_id=str(txn_id))
    return txn


async def complete_pending(
    db: AsyncSession,
    txn_id: uuid.UUID,
    *,
    commit: bool = True,
) -> WalletTransaction:
    """Complete a pending entry and apply its balance change.

    Completing an entry that is no longer pending is a no-op that returns it
    unchanged, so confirmations can be replayed.
    """
    try:
        txn = await _reload_entry(db, txn_id)
        if not await _claim_pending(
            db, txn_id, TransactionStatus.COMPLETED, completed_at=utc_now()
        ):
            logger.info(
                "Transaction %s already %s; completion skipped", txn_id, txn.status.value
            )
            return txn

        balance_before, balance_after = await _apply_balance_change(
            db, txn.wallet_id, txn.direction, txn.amount
        )
        await db.execute(
            update(WalletTransaction)
            .where(WalletTransaction.id == txn_id)
            .values(balance_before=balance_before, balance_after=balance_after)
            .execution_options(synchronize_session=False)
        )
        if commit:
            await db.commit()
    except LedgerError:
        if commit:
            await db.rollback()
        raise

    logger.info(
        "Completed pending %s %d on wallet %s (ref=%s), balance %d→%d",
        txn.direction.value,
        txn.amount,
        txn.wallet_id,
        txn.reference,
        balance_before,
        balance_after,
    )
    return await _reload_entry(db, txn_id)


async def fail_pending(
    db: AsyncSession,
    txn_id: uuid.UUID,
    *,
    reason: str,
    commit: bool = True,
) -> WalletTransaction:
    """Mark a pending entry failed. No balance effect; no-op if already settled."""
    if await _claim_pending(db, txn_id, TransactionStatus.FAILED, failure_reason=reason):
        logger.warning("Pending transaction %s failed: %s", txn_id, reason)
    if commit:
        await db.commit()
    return await _reload_entry(db, txn_id)


# ---------------------------------------------------------------------------
# Reads, reconciliation, status
# ---------------------------------------------------------------------------


@dataclass
class WalletReconciliation:
    wallet_id: uuid.UUID
    cached_balance: int
    ledger_balance: int
    completed_entries: int
    pending_entries: int

    @property
    def consistent(self) -> bool:
        return self.cached_balance == self.ledger_balance


async def ledger_balance(db: AsyncSession, wallet_id: uuid.UUID) -> tuple[int, int]:
    """Σ signed amount of completed entries, and how many there are."""
    signed = case(
        (
            WalletTransaction.direction == TransactionDirection.CREDIT,
            WalletTransaction.amount,
        ),
        else_=-WalletTransaction.amount,
    )
    result = await db.execute(
        select(func.coalesce(func.sum(signed), 0), func.count()).where(
            WalletTransaction.wallet_id == wallet_id,
            WalletTransaction.status == TransactionStatus.COMPLETED,
        )
    )
    total, count = result.one()
    return int(total), int(count)


async def reconcile_wallet(db: AsyncSession, wallet_id: uuid.UUID) -> WalletReconciliation:
    """Compare the cached balance with the ledger. Read-only."""
    wallet = await get_wallet_by_id(db, wallet_id)
    total, completed = await ledger_balance(db, wallet_id)
    pending = (
        await db.execute(
            select(func.count()).where(
                WalletTransaction.wallet_id == wallet_id,
                WalletTransaction.status == TransactionStatus.PENDING,
            )
        )
    ).scalar_one()

    report = WalletReconciliation(
        wallet_id=wallet.id,
        cached_balance=wallet.balance,
        ledger_balance=total,
        completed_entries=completed,
        pending_entries=int(pending),
    )
    if not report.consistent:
        logger.error(
            "Wallet %s balance drift: cached=%d ledger=%d",
            wallet.id,
            report.cached_balance,
            report.ledger_balance,
        )
    return report


async def list_transactions(
    db: AsyncSession,
    wallet_id: uuid.UUID,
    *,
    skip: int = 0,
    limit: int = 50,
    transaction_type: Optional[TransactionType] = None,
) -> tuple[list[WalletTransaction], int]:
    base = select(WalletTransaction).where(WalletTransaction.wallet_id == wallet_id)
    count_base = (
        select(func.count())
        .select_from(WalletTransaction)
        .where(WalletTransaction.wallet_id == wallet_id)
    )
    if transaction_type:
        base = base.where(WalletTransaction.transaction_type == transaction_type)
        count_base = count_base.where(
            WalletTransaction.transaction_type == transaction_type
        )

    total = (await db.execute(count_base)).scalar() or 0
    result = await db.execute(
        base.order_by(WalletTransaction.created_at.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


async def set_wallet_status(
    db: AsyncSession,
    *,
    wallet_id: uuid.UUID,
    status: WalletStatus,
    actor: str,
    reason: Optional[str] = None,
    custody_ref: Optional[str] = None,
    commit: bool = True,
) -> Wallet:
    """Change wallet status (freeze, unfreeze, custody activation). Audited."""
    wallet = await get_wallet_by_id(db, wallet_id)
    before = {"status": wallet.status, "custody_ref": wallet.custody_ref}

    wallet.status = status
    if custody_ref is not None:
        wallet.custody_ref = custody_ref
    if status == WalletStatus.FROZEN:
        wallet.frozen_reason = reason
        wallet.frozen_at = utc_now()
    else:
        wallet.frozen_reason = None
        wallet.frozen_at = None

    record_audit(
        db,
        entity_type="wallet",
        entity_id=wallet.id,
        action=f"status_{status.value}",
        actor=actor,
        before=before,
        after={"status": status, "custody_ref": wallet.custody_ref},
        reason=reason,
    )
    await db.flush()
    if commit:
        await db.commit()
        await db.refresh(wallet)

    logger.info("Wallet %s status %s → %s by %s", wallet.id, before["status"], status, actor)
    return wallet
