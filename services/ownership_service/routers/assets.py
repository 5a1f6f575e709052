"""Asset registration and ownership-availability endpoints."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user, require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.ownership_service.schemas import (
    AssetCreateRequest,
    AssetResponse,
    RemainingOwnershipResponse,
)
from services.ownership_service.services import registry
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/assets", tags=["assets"])


@router.post("", response_model=AssetResponse, status_code=status.HTTP_201_CREATED)
async def register_asset(
    body: AssetCreateRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Register a vehicle, battery or charging cabinet for tokenization."""
    return await registry.register_asset(
        db,
        asset_type=body.asset_type,
        name=body.name,
        original_value=body.original_value,
        current_value=body.current_value,
        external_ref=body.external_ref,
        operator_id=body.operator_id,
        custody_ref=body.custody_ref,
        actor=admin.user_id,
    )


@router.get("/{asset_id}", response_model=AssetResponse)
async def get_asset(
    asset_id: uuid.UUID,
    _user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await registry.get_asset(db, asset_id)


@router.get("/{asset_id}/remaining", response_model=RemainingOwnershipResponse)
async def get_remaining_ownership(
    asset_id: uuid.UUID,
    _user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Percent of the asset still available to mint."""
    remaining = await registry.remaining_ownership(db, asset_id)
    return RemainingOwnershipResponse(
        asset_id=asset_id,
        allocated=registry.FULL_OWNERSHIP - remaining,
        remaining=remaining,
    )
