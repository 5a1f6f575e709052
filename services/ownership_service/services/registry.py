"""Ownership Registry: assets and their fractional ownership tokens.

Every change to an asset's ownership aggregate goes through here. ``mint``
bumps ``assets.ownership_version`` before reading the allocated sum; that
UPDATE holds the asset row lock (the write lock on SQLite) until commit, so
concurrent minters on the same asset check and insert one at a time.
"""

import enum
import secrets
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from libs.audit import record_audit
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    Conflict,
    InsufficientRemainingOwnership,
    NotFound,
    ValidationFailed,
)
from libs.common.logging import get_logger
from services.ownership_service.models import (
    ALLOCATING_STATUSES,
    Asset,
    AssetType,
    OwnershipToken,
    TokenStatus,
)
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

FULL_OWNERSHIP = Decimal("100")
FRACTION_QUANTUM = Decimal("0.0001")


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


async def register_asset(
    db: AsyncSession,
    *,
    asset_type: AssetType,
    name: str,
    original_value: int,
    current_value: Optional[int] = None,
    external_ref: Optional[str] = None,
    operator_id: Optional[str] = None,
    custody_ref: Optional[str] = None,
    actor: Optional[str] = None,
) -> Asset:
    if original_value < 0:
        raise ValidationFailed("Asset value cannot be negative")
    if external_ref and await find_asset_by_external_ref(db, external_ref):
        raise Conflict("Asset already registered", external_ref=external_ref)

    asset = Asset(
        asset_type=asset_type,
        name=name,
        external_ref=external_ref,
        original_value=original_value,
        current_value=original_value if current_value is None else current_value,
        operator_id=operator_id,
        custody_ref=custody_ref,
    )
    db.add(asset)
    await db.flush()
    record_audit(
        db,
        entity_type="asset",
        entity_id=asset.id,
        action="register",
        actor=actor,
        after={
            "asset_type": asset_type,
            "name": name,
            "external_ref": external_ref,
            "original_value": original_value,
            "operator_id": operator_id,
        },
    )
    await db.commit()
    await db.refresh(asset)
    logger.info("Registered %s asset %s (%s)", asset_type.value, asset.id, name)
    return asset


async def get_asset(db: AsyncSession, asset_id: uuid.UUID) -> Asset:
    """Raises NotFound."""
    result = await db.execute(
        select(Asset)
        .where(Asset.id == asset_id)
        .execution_options(populate_existing=True)
    )
    asset = result.scalar_one_or_none()
    if not asset:
        raise NotFound("Asset not found", asset_id=str(asset_id))
    return asset


async def find_asset_by_external_ref(
    db: AsyncSession, external_ref: str
) -> Optional[Asset]:
    result = await db.execute(select(Asset).where(Asset.external_ref == external_ref))
    return result.scalar_one_or_none()


async def update_custody(
    db: AsyncSession,
    asset: Asset,
    *,
    custody_ref: Optional[str],
    custody_status: Optional[str],
    actor: Optional[str] = None,
) -> Asset:
    """Record custody state reported by the provider. Caller commits."""
    before = {"custody_ref": asset.custody_ref, "custody_status": asset.custody_status}
    if custody_ref is not None:
        asset.custody_ref = custody_ref
    if custody_status is not None:
        asset.custody_status = custody_status
    asset.custody_updated_at = utc_now()
    record_audit(
        db,
        entity_type="asset",
        entity_id=asset.id,
        action="custody_update",
        actor=actor,
        before=before,
        after={"custody_ref": asset.custody_ref, "custody_status": asset.custody_status},
    )
    await db.flush()
    return asset


# ---------------------------------------------------------------------------
# Ownership aggregate
# ---------------------------------------------------------------------------


async def allocated_fraction(db: AsyncSession, asset_id: uuid.UUID) -> Decimal:
    """Σ fraction_owned over pending and active tokens."""
    result = await db.execute(
        select(func.coalesce(func.sum(OwnershipToken.fraction_owned), 0)).where(
            OwnershipToken.asset_id == asset_id,
            OwnershipToken.status.in_(ALLOCATING_STATUSES),
        )
    )
    return Decimal(str(result.scalar_one())).quantize(FRACTION_QUANTUM)


async def remaining_ownership(db: AsyncSession, asset_id: uuid.UUID) -> Decimal:
    await get_asset(db, asset_id)
    return FULL_OWNERSHIP - await allocated_fraction(db, asset_id)


def _parse_fraction(fraction) -> Decimal:
    try:
        value = Decimal(str(fraction))
    except (InvalidOperation, ValueError):
        raise ValidationFailed("Fraction must be a number", fraction=str(fraction))
    if not value.is_finite() or value <= 0 or value > FULL_OWNERSHIP:
        raise ValidationFailed(
            "Fraction must be greater than 0 and at most 100", fraction=str(fraction)
        )
    quantized = value.quantize(FRACTION_QUANTUM, rounding=ROUND_HALF_UP)
    if quantized <= 0:
        raise ValidationFailed("Fraction is below the smallest unit", fraction=str(fraction))
    return quantized


def generate_token_id() -> str:
    return "TKN_" + secrets.token_hex(10).upper()


async def mint(
    db: AsyncSession,
    *,
    asset_id: uuid.UUID,
    owner_id: str,
    fraction,
    investment_amount: int,
    actor: Optional[str] = None,
    token_id: Optional[str] = None,
    status: TokenStatus = TokenStatus.PENDING,
    tx_hash: Optional[str] = None,
    chain: Optional[str] = None,
    metadata_hash: Optional[str] = None,
    minted_at: Optional[datetime] = None,
    commit: bool = True,
) -> OwnershipToken:
    """Allocate ``fraction`` percent of an asset to ``owner_id``.

    Raises InsufficientRemainingOwnership (nothing written) when the fraction
    exceeds what is left.
    """
    requested = _parse_fraction(fraction)
    if investment_amount < 0:
        raise ValidationFailed("Investment amount cannot be negative")
    if status not in ALLOCATING_STATUSES:
        raise ValidationFailed("New tokens must be pending or active", status=status.value)

    locked = await db.execute(
        update(Asset)
        .where(Asset.id == asset_id)
        .values(ownership_version=Asset.ownership_version + 1)
        .returning(Asset.id)
        .execution_options(synchronize_session=False)
    )
    if locked.scalar_one_or_none() is None:
        raise NotFound("Asset not found", asset_id=str(asset_id))

    remaining = FULL_OWNERSHIP - await allocated_fraction(db, asset_id)
    if requested > remaining:
        if commit:
            await db.rollback()
        logger.warning(
            "Mint of %s%% on asset %s refused: %s%% remaining",
            requested,
            asset_id,
            remaining,
        )
        raise InsufficientRemainingOwnership(remaining=remaining, requested=requested)

    token = OwnershipToken(
        token_id=token_id or generate_token_id(),
        asset_id=asset_id,
        owner_id=owner_id,
        fraction_owned=requested,
        investment_amount=investment_amount,
        current_value=investment_amount,
        total_returns=0,
        status=status,
        tx_hash=tx_hash,
        chain=chain,
        metadata_hash=metadata_hash,
        minted_at=minted_at or (utc_now() if status == TokenStatus.ACTIVE else None),
    )
    db.add(token)
    await db.execute(
        update(Asset)
        .where(Asset.id == asset_id)
        .values(is_tokenized=True)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    record_audit(
        db,
        entity_type="ownership_token",
        entity_id=token.id,
        action="mint",
        actor=actor,
        after={
            "token_id": token.token_id,
            "asset_id": asset_id,
            "owner_id": owner_id,
            "fraction_owned": requested,
            "investment_amount": investment_amount,
            "status": status,
        },
    )
    if commit:
        await db.commit()

    logger.info(
        "Minted %s%% of asset %s to %s (token=%s, %s%% was remaining)",
        requested,
        asset_id,
        owner_id,
        token.token_id,
        remaining,
    )
    return token


# ---------------------------------------------------------------------------
# Token lifecycle
# ---------------------------------------------------------------------------


class ConfirmOutcome(str, enum.Enum):
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    CONFLICT = "conflict"


@dataclass
class Confirmation:
    token: OwnershipToken
    outcome: ConfirmOutcome


async def get_token(db: AsyncSession, token_pk: uuid.UUID) -> OwnershipToken:
    """Raises NotFound."""
    result = await db.execute(
        select(OwnershipToken)
        .where(OwnershipToken.id == token_pk)
        .execution_options(populate_existing=True)
    )
    token = result.scalar_one_or_none()
    if not token:
        raise NotFound("Token not found", token_id=str(token_pk))
    return token


async def find_token_by_external_id(
    db: AsyncSession, token_id: str
) -> Optional[OwnershipToken]:
    result = await db.execute(
        select(OwnershipToken)
        .where(OwnershipToken.token_id == token_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def confirm(
    db: AsyncSession,
    *,
    token_pk: uuid.UUID,
    tx_hash: str,
    chain: Optional[str] = None,
    metadata_hash: Optional[str] = None,
    minted_at: Optional[datetime] = None,
    actor: Optional[str] = None,
    commit: bool = True,
) -> Confirmation:
    """Attach the on-chain hash and activate the token.

    Same hash again is a no-op. A different hash is logged and audited as a
    conflict and the stored hash is kept.
    """
    if not tx_hash:
        raise ValidationFailed("tx_hash is required")

    token = await get_token(db, token_pk)
    if token.status == TokenStatus.REVOKED:
        raise Conflict("Token has been revoked", token_id=token.token_id)

    claimed = await db.execute(
        update(OwnershipToken)
        .where(OwnershipToken.id == token_pk, OwnershipToken.tx_hash.is_(None))
        .values(
            tx_hash=tx_hash,
            status=TokenStatus.ACTIVE,
            chain=chain or OwnershipToken.chain,
            metadata_hash=metadata_hash or OwnershipToken.metadata_hash,
            minted_at=minted_at or utc_now(),
            updated_at=utc_now(),
        )
        .returning(OwnershipToken.id)
        .execution_options(synchronize_session=False)
    )

    if claimed.scalar_one_or_none() is not None:
        record_audit(
            db,
            entity_type="ownership_token",
            entity_id=token_pk,
            action="confirm",
            actor=actor,
            before={"status": token.status, "tx_hash": None},
            after={"status": TokenStatus.ACTIVE, "tx_hash": tx_hash},
        )
        if commit:
            await db.commit()
        logger.info("Confirmed token %s (tx=%s)", token.token_id, tx_hash)
        return Confirmation(await get_token(db, token_pk), ConfirmOutcome.CONFIRMED)

    token = await get_token(db, token_pk)
    if token.tx_hash == tx_hash:
        logger.info("Token %s already confirmed with tx=%s; no-op", token.token_id, tx_hash)
        return Confirmation(token, ConfirmOutcome.ALREADY_CONFIRMED)

    logger.warning(
        "Confirmation conflict for token %s: stored tx=%s, received tx=%s (ignored)",
        token.token_id,
        token.tx_hash,
        tx_hash,
    )
    record_audit(
        db,
        entity_type="ownership_token",
        entity_id=token_pk,
        action="confirm_conflict",
        actor=actor,
        before={"tx_hash": token.tx_hash},
        after={"tx_hash": token.tx_hash},
        reason=f"received different tx_hash {tx_hash}",
    )
    if commit:
        await db.commit()
    return Confirmation(token, ConfirmOutcome.CONFLICT)


async def transfer_owner(
    db: AsyncSession,
    *,
    token_pk: uuid.UUID,
    new_owner_id: str,
    actor: Optional[str] = None,
    tx_hash: Optional[str] = None,
    commit: bool = True,
) -> OwnershipToken:
    """Reassign the owner. The fraction and the token itself are unchanged.

    Absolute: transferring to the current owner is a no-op.
    """
    token = await get_token(db, token_pk)
    if token.status == TokenStatus.REVOKED:
        raise Conflict("Token has been revoked", token_id=token.token_id)
    if token.owner_id == new_owner_id:
        logger.info("Token %s already owned by %s; no-op", token.token_id, new_owner_id)
        return token

    previous = token.owner_id
    token.previous_owner_id = previous
    token.owner_id = new_owner_id
    token.transferred_at = utc_now()
    record_audit(
        db,
        entity_type="ownership_token",
        entity_id=token.id,
        action="transfer",
        actor=actor,
        before={"owner_id": previous},
        after={"owner_id": new_owner_id, "tx_hash": tx_hash},
    )
    await db.flush()
    if commit:
        await db.commit()
        await db.refresh(token)

    logger.info("Transferred token %s from %s to %s", token.token_id, previous, new_owner_id)
    return token


async def revoke(
    db: AsyncSession,
    *,
    token_pk: uuid.UUID,
    actor: Optional[str] = None,
    reason: Optional[str] = None,
) -> OwnershipToken:
    """Release the token's fraction back to the asset."""
    token = await get_token(db, token_pk)
    if token.status == TokenStatus.REVOKED:
        return token

    before = {"status": token.status}
    token.status = TokenStatus.REVOKED
    token.revoked_at = utc_now()
    record_audit(
        db,
        entity_type="ownership_token",
        entity_id=token.id,
        action="revoke",
        actor=actor,
        before=before,
        after={"status": TokenStatus.REVOKED},
        reason=reason,
    )
    await db.commit()
    await db.refresh(token)
    logger.info(
        "Revoked token %s (%s%% of asset %s released)",
        token.token_id,
        token.fraction_owned,
        token.asset_id,
    )
    return token


async def add_returns(
    db: AsyncSession, token_pk: uuid.UUID, amount: int
) -> None:
    """Increment total_returns and current_value atomically. Caller commits."""
    await db.execute(
        update(OwnershipToken)
        .where(OwnershipToken.id == token_pk)
        .values(
            total_returns=OwnershipToken.total_returns + amount,
            current_value=OwnershipToken.current_value + amount,
            updated_at=utc_now(),
        )
        .execution_options(synchronize_session=False)
    )


async def active_tokens_for_asset(
    db: AsyncSession, asset_id: uuid.UUID
) -> list[OwnershipToken]:
    result = await db.execute(
        select(OwnershipToken)
        .where(
            OwnershipToken.asset_id == asset_id,
            OwnershipToken.status == TokenStatus.ACTIVE,
        )
        .order_by(OwnershipToken.created_at, OwnershipToken.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_tokens_for_owner(
    db: AsyncSession, owner_id: str
) -> list[OwnershipToken]:
    result = await db.execute(
        select(OwnershipToken)
        .where(OwnershipToken.owner_id == owner_id)
        .order_by(OwnershipToken.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Portfolio
# ---------------------------------------------------------------------------


def roi_percent(total_returns: int, total_investment: int) -> Decimal:
    if total_investment <= 0:
        return Decimal("0")
    return (Decimal(total_returns) * 100 / Decimal(total_investment)).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )


@dataclass
class PortfolioBucket:
    chain: str
    count: int = 0
    total_investment: int = 0
    total_current_value: int = 0
    total_returns: int = 0

    @property
    def roi_percent(self) -> Decimal:
        return roi_percent(self.total_returns, self.total_investment)


@dataclass
class PortfolioSummary:
    owner_id: str
    overall: PortfolioBucket
    by_chain: list[PortfolioBucket] = field(default_factory=list)
    tokens: list[OwnershipToken] = field(default_factory=list)


async def portfolio_summary(db: AsyncSession, owner_id: str) -> PortfolioSummary:
    """Totals over the owner's pending and active tokens, grouped by chain."""
    tokens = [
        t
        for t in await list_tokens_for_owner(db, owner_id)
        if t.status in ALLOCATING_STATUSES
    ]
    overall = PortfolioBucket(chain="all")
    chains: dict[str, PortfolioBucket] = defaultdict(lambda: PortfolioBucket(chain=""))
    for token in tokens:
        key = token.chain or "unknown"
        bucket = chains[key]
        bucket.chain = key
        for b in (overall, bucket):
            b.count += 1
            b.total_investment += token.investment_amount
            b.total_current_value += token.current_value
            b.total_returns += token.total_returns

    return PortfolioSummary(
        owner_id=owner_id,
        overall=overall,
        by_chain=sorted(chains.values(), key=lambda b: b.chain),
        tokens=tokens,
    )
