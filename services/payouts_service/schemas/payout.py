"""Payout request/response schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.payouts_service.models.enums import PayoutBatchStatus, PayoutStatus


class DistributeRequest(BaseModel):
    asset_id: uuid.UUID
    total_amount: int = Field(..., gt=0, description="Minor units")
    period: Optional[str] = Field(default=None, max_length=64)
    description: Optional[str] = None


class DistributionResponse(BaseModel):
    payout_id: uuid.UUID
    owner_id: str
    token_id: Optional[str] = None
    amount: int
    status: PayoutStatus
    failure_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DistributeResponse(BaseModel):
    payout_batch_id: uuid.UUID
    reference: str
    status: PayoutBatchStatus
    total_amount: int
    distributed_amount: int
    distributions: list[DistributionResponse]
    external_tx_hash: Optional[str] = None


class PayoutResponse(BaseModel):
    id: uuid.UUID
    batch_id: Optional[uuid.UUID] = None
    owner_id: str
    token_id: Optional[uuid.UUID] = None
    amount: int
    period: Optional[str] = None
    description: Optional[str] = None
    tx_hash: Optional[str] = None
    status: PayoutStatus
    failure_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PayoutBatchResponse(BaseModel):
    id: uuid.UUID
    reference: str
    asset_id: uuid.UUID
    total_amount: int
    distributed_amount: int
    currency: str
    period: Optional[str] = None
    description: Optional[str] = None
    distributed_by: str
    external_tx_hash: Optional[str] = None
    status: PayoutBatchStatus
    completed_at: Optional[datetime] = None
    created_at: datetime
    payouts: list[PayoutResponse] = []

    model_config = ConfigDict(from_attributes=True)


class PayoutListResponse(BaseModel):
    payouts: list[PayoutResponse]
    skip: int
    limit: int
