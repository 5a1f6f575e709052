"""Revenue event request/response schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.revenue_service.models.enums import RevenueSourceType


class RevenueEventCreateRequest(BaseModel):
    asset_id: uuid.UUID
    gross_amount: int = Field(..., gt=0, description="Minor units")
    source_type: RevenueSourceType = RevenueSourceType.OTHER
    source_reference: str = Field(..., min_length=1)
    occurred_at: Optional[datetime] = None
    description: Optional[str] = None


class RideRevenueRequest(BaseModel):
    """A completed ride, priced by distance."""

    asset_id: uuid.UUID
    ride_id: str = Field(..., min_length=1)
    distance_km: Decimal = Field(..., gt=0)
    rate_per_km: Optional[int] = Field(default=None, gt=0)
    occurred_at: Optional[datetime] = None


class CompensateRequest(BaseModel):
    reason: str = Field(..., min_length=5)


class RevenueEventResponse(BaseModel):
    id: uuid.UUID
    asset_id: uuid.UUID
    source_type: RevenueSourceType
    source_reference: str
    gross_amount: int
    investor_amount: int
    rider_amount: int
    management_amount: int
    maintenance_amount: int
    config_version: str
    compensates_event_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    occurred_at: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RevenueSummaryResponse(BaseModel):
    asset_id: uuid.UUID
    event_count: int
    gross_amount: int
    investor_amount: int
    rider_amount: int
    management_amount: int
    maintenance_amount: int
    distributed_amount: int
    available_investor_pool: int

    model_config = ConfigDict(from_attributes=True)
