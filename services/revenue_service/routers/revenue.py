"""Revenue recording endpoints."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import require_admin, require_admin_or_service, require_operator
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.revenue_service.models import RevenueSourceType
from services.revenue_service.schemas import (
    CompensateRequest,
    RevenueEventCreateRequest,
    RevenueEventResponse,
    RevenueSummaryResponse,
    RideRevenueRequest,
)
from services.revenue_service.services.engine import (
    asset_revenue_summary,
    gross_for_ride,
    record_compensating_event,
    record_revenue_event,
)
from services.revenue_service.services.split_config import (
    RevenueSplitConfig,
    get_split_config,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/revenue", tags=["revenue"])


@router.post(
    "/events",
    response_model=RevenueEventResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_revenue_event(
    body: RevenueEventCreateRequest,
    caller: AuthUser = Depends(require_admin_or_service),
    config: RevenueSplitConfig = Depends(get_split_config),
    db: AsyncSession = Depends(get_async_db),
):
    """Record gross revenue. Replays of the same source return the stored event."""
    return await record_revenue_event(
        db,
        asset_id=body.asset_id,
        gross_amount=body.gross_amount,
        source_type=body.source_type,
        source_reference=body.source_reference,
        config=config,
        occurred_at=body.occurred_at,
        description=body.description,
        actor=caller.user_id,
    )


@router.post(
    "/rides",
    response_model=RevenueEventResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_ride(
    body: RideRevenueRequest,
    caller: AuthUser = Depends(require_admin_or_service),
    config: RevenueSplitConfig = Depends(get_split_config),
    db: AsyncSession = Depends(get_async_db),
):
    """Price a completed ride by distance and record its revenue."""
    return await record_revenue_event(
        db,
        asset_id=body.asset_id,
        gross_amount=gross_for_ride(body.distance_km, body.rate_per_km),
        source_type=RevenueSourceType.RIDE,
        source_reference=body.ride_id,
        config=config,
        occurred_at=body.occurred_at,
        description=f"Ride {body.ride_id} ({body.distance_km} km)",
        actor=caller.user_id,
    )


@router.post(
    "/events/{event_id}/compensate",
    response_model=RevenueEventResponse,
    status_code=status.HTTP_201_CREATED,
)
async def compensate_event(
    event_id: uuid.UUID,
    body: CompensateRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Reverse an event with a negated compensating event."""
    return await record_compensating_event(
        db, event_id=event_id, reason=body.reason, actor=admin.user_id
    )


@router.get("/assets/{asset_id}/summary", response_model=RevenueSummaryResponse)
async def get_asset_summary(
    asset_id: uuid.UUID,
    _operator: AuthUser = Depends(require_operator),
    db: AsyncSession = Depends(get_async_db),
):
    summary = await asset_revenue_summary(db, asset_id)
    return RevenueSummaryResponse.model_validate(summary)
