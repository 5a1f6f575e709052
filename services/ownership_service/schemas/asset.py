"""Asset request/response schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.ownership_service.models.enums import AssetType


class AssetCreateRequest(BaseModel):
    asset_type: AssetType
    name: str = Field(..., min_length=1)
    original_value: int = Field(..., ge=0, description="Minor units")
    current_value: Optional[int] = Field(default=None, ge=0)
    external_ref: Optional[str] = None
    operator_id: Optional[str] = Field(
        default=None, description="Principal allowed to distribute payouts"
    )
    custody_ref: Optional[str] = None


class AssetResponse(BaseModel):
    id: uuid.UUID
    asset_type: AssetType
    name: str
    external_ref: Optional[str] = None
    original_value: int
    current_value: int
    is_tokenized: bool
    operator_id: Optional[str] = None
    custody_ref: Optional[str] = None
    custody_status: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RemainingOwnershipResponse(BaseModel):
    asset_id: uuid.UUID
    allocated: Decimal
    remaining: Decimal
