"""Revenue Engine: split gross revenue into stakeholder buckets.

Amounts are integer minor units. Investor, rider and management buckets are
each rounded half-up; maintenance takes whatever is left, so the four
buckets always add back to the gross exactly.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from libs.audit import record_audit
from libs.common.config import get_settings
from libs.common.currency import round_minor
from libs.common.errors import Conflict, NotFound, ValidationFailed
from libs.common.logging import get_logger
from services.ownership_service.services.registry import get_asset
from services.payouts_service.models import Payout, PayoutBatch, PayoutStatus
from services.revenue_service.models import RevenueEvent, RevenueSourceType
from services.revenue_service.services.split_config import (
    RevenueSplitConfig,
    get_split_config,
)
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class RevenueSplit:
    investor: int
    rider: int
    management: int
    maintenance: int

    @property
    def total(self) -> int:
        return self.investor + self.rider + self.management + self.maintenance


def split_revenue(gross_amount: int, config: RevenueSplitConfig) -> RevenueSplit:
    """Round the first three buckets half-up; maintenance takes the remainder.

    The buckets always sum to ``gross_amount``. For a few minor units the
    rounded buckets can overshoot the gross, leaving maintenance negative
    (5 under 50/30/15/5 gives 3, 2, 1 and -1).
    """
    gross = Decimal(gross_amount)
    investor = round_minor(gross * config.investor)
    rider = round_minor(gross * config.rider)
    management = round_minor(gross * config.management)
    return RevenueSplit(
        investor=investor,
        rider=rider,
        management=management,
        maintenance=gross_amount - investor - rider - management,
    )


def gross_for_ride(distance_km, rate_per_km: Optional[int] = None) -> int:
    """Price a completed ride in minor units."""
    try:
        distance = Decimal(str(distance_km))
    except (InvalidOperation, ValueError):
        raise ValidationFailed("Distance must be a number", distance_km=str(distance_km))
    if not distance.is_finite() or distance <= 0:
        raise ValidationFailed("Distance must be positive", distance_km=str(distance_km))
    rate = settings.REVENUE_BASE_RATE_PER_KM if rate_per_km is None else rate_per_km
    if rate <= 0:
        raise ValidationFailed("Rate per km must be positive", rate_per_km=rate)
    return round_minor(distance * rate)


async def find_event_by_source(
    db: AsyncSession, source_type: RevenueSourceType, source_reference: str
) -> Optional[RevenueEvent]:
    result = await db.execute(
        select(RevenueEvent).where(
            RevenueEvent.source_type == source_type,
            RevenueEvent.source_reference == source_reference,
        )
    )
    return result.scalar_one_or_none()


async def get_event(db: AsyncSession, event_id: uuid.UUID) -> RevenueEvent:
    result = await db.execute(select(RevenueEvent).where(RevenueEvent.id == event_id))
    event = result.scalar_one_or_none()
    if not event:
        raise NotFound("Revenue event not found", event_id=str(event_id))
    return event


def _replayed(
    existing: RevenueEvent, asset_id: uuid.UUID, gross_amount: int
) -> RevenueEvent:
    if existing.asset_id != asset_id or existing.gross_amount != gross_amount:
        raise Conflict(
            "Revenue source already recorded with different values",
            source_type=existing.source_type.value,
            source_reference=existing.source_reference,
            existing_event_id=str(existing.id),
        )
    logger.info(
        "Revenue for %s:%s already recorded as %s; no-op",
        existing.source_type.value,
        existing.source_reference,
        existing.id,
    )
    return existing


async def record_revenue_event(
    db: AsyncSession,
    *,
    asset_id: uuid.UUID,
    gross_amount: int,
    source_type: RevenueSourceType,
    source_reference: str,
    config: Optional[RevenueSplitConfig] = None,
    occurred_at: Optional[datetime] = None,
    description: Optional[str] = None,
    actor: Optional[str] = None,
) -> RevenueEvent:
    """Split and persist one gross-revenue occurrence.

    Idempotent per ``(source_type, source_reference)``.
    """
    if source_type == RevenueSourceType.COMPENSATION:
        raise ValidationFailed("Use record_compensating_event for corrections")
    if gross_amount <= 0:
        raise ValidationFailed("Gross amount must be positive", gross_amount=gross_amount)
    if not source_reference:
        raise ValidationFailed("source_reference is required")

    existing = await find_event_by_source(db, source_type, source_reference)
    if existing:
        return _replayed(existing, asset_id, gross_amount)

    await get_asset(db, asset_id)
    config = config or get_split_config()
    split = split_revenue(gross_amount, config)

    event = RevenueEvent(
        asset_id=asset_id,
        source_type=source_type,
        source_reference=source_reference,
        gross_amount=gross_amount,
        investor_amount=split.investor,
        rider_amount=split.rider,
        management_amount=split.management,
        maintenance_amount=split.maintenance,
        config_version=config.version,
        description=description,
        created_by=actor,
    )
    if occurred_at:
        event.occurred_at = occurred_at
    db.add(event)
    try:
        await db.flush()
        record_audit(
            db,
            entity_type="revenue_event",
            entity_id=event.id,
            action="record",
            actor=actor,
            after={
                "asset_id": asset_id,
                "gross_amount": gross_amount,
                "investor": split.investor,
                "rider": split.rider,
                "management": split.management,
                "maintenance": split.maintenance,
                "config_version": config.version,
            },
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await find_event_by_source(db, source_type, source_reference)
        if existing is None:
            raise
        return _replayed(existing, asset_id, gross_amount)

    logger.info(
        "Recorded revenue %d for asset %s (%s:%s) split %d/%d/%d/%d v%s",
        gross_amount,
        asset_id,
        source_type.value,
        source_reference,
        split.investor,
        split.rider,
        split.management,
        split.maintenance,
        config.version,
    )
    return event


async def record_compensating_event(
    db: AsyncSession,
    *,
    event_id: uuid.UUID,
    reason: str,
    actor: Optional[str] = None,
) -> RevenueEvent:
    """Reverse an event in full with a new, negated event."""
    original = await get_event(db, event_id)
    if original.compensates_event_id is not None:
        raise ValidationFailed("A compensation cannot itself be compensated")

    already = await db.execute(
        select(RevenueEvent.id).where(RevenueEvent.compensates_event_id == event_id)
    )
    if already.scalar_one_or_none() is not None:
        raise Conflict("Revenue event already compensated", event_id=str(event_id))

    compensation = RevenueEvent(
        asset_id=original.asset_id,
        source_type=RevenueSourceType.COMPENSATION,
        source_reference=f"compensation:{original.id}",
        gross_amount=-original.gross_amount,
        investor_amount=-original.investor_amount,
        rider_amount=-original.rider_amount,
        management_amount=-original.management_amount,
        maintenance_amount=-original.maintenance_amount,
        config_version=original.config_version,
        compensates_event_id=original.id,
        description=reason,
        created_by=actor,
    )
    db.add(compensation)
    try:
        await db.flush()
        record_audit(
            db,
            entity_type="revenue_event",
            entity_id=compensation.id,
            action="compensate",
            actor=actor,
            before={"event_id": original.id, "gross_amount": original.gross_amount},
            after={"gross_amount": compensation.gross_amount},
            reason=reason,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Revenue event already compensated", event_id=str(event_id))

    logger.info(
        "Compensated revenue event %s with %s (%d)",
        original.id,
        compensation.id,
        compensation.gross_amount,
    )
    return compensation


@dataclass
class RevenueSummary:
    asset_id: uuid.UUID
    event_count: int
    gross_amount: int
    investor_amount: int
    rider_amount: int
    management_amount: int
    maintenance_amount: int
    distributed_amount: int

    @property
    def available_investor_pool(self) -> int:
        return max(0, self.investor_amount - self.distributed_amount)


async def asset_revenue_summary(db: AsyncSession, asset_id: uuid.UUID) -> RevenueSummary:
    """Net totals (compensations included) and what has already been paid out."""
    await get_asset(db, asset_id)
    totals = (
        await db.execute(
            select(
                func.count(RevenueEvent.id),
                func.coalesce(func.sum(RevenueEvent.gross_amount), 0),
                func.coalesce(func.sum(RevenueEvent.investor_amount), 0),
                func.coalesce(func.sum(RevenueEvent.rider_amount), 0),
                func.coalesce(func.sum(RevenueEvent.management_amount), 0),
                func.coalesce(func.sum(RevenueEvent.maintenance_amount), 0),
            ).where(RevenueEvent.asset_id == asset_id)
        )
    ).one()
    distributed = (
        await db.execute(
            select(func.coalesce(func.sum(Payout.amount), 0))
            .join(PayoutBatch, Payout.batch_id == PayoutBatch.id)
            .where(
                PayoutBatch.asset_id == asset_id,
                Payout.status != PayoutStatus.FAILED,
            )
        )
    ).scalar_one()

    return RevenueSummary(
        asset_id=asset_id,
        event_count=int(totals[0]),
        gross_amount=int(totals[1]),
        investor_amount=int(totals[2]),
        rider_amount=int(totals[3]),
        management_amount=int(totals[4]),
        maintenance_amount=int(totals[5]),
        distributed_amount=int(distributed),
    )
