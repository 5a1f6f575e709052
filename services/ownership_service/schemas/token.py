"""Ownership token request/response schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.ownership_service.models.enums import TokenStatus


class MintTokenRequest(BaseModel):
    asset_id: uuid.UUID
    owner_id: str
    fraction: Decimal = Field(..., gt=0, le=100, description="Percent of the asset")
    investment_amount: int = Field(..., ge=0, description="Minor units")


class TokenResponse(BaseModel):
    id: uuid.UUID
    token_id: str
    asset_id: uuid.UUID
    owner_id: str
    fraction_owned: Decimal
    investment_amount: int
    total_returns: int
    current_value: int
    status: TokenStatus
    tx_hash: Optional[str] = None
    chain: Optional[str] = None
    metadata_hash: Optional[str] = None
    minted_at: Optional[datetime] = None
    previous_owner_id: Optional[str] = None
    transferred_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConfirmTokenRequest(BaseModel):
    tx_hash: str = Field(..., min_length=1)
    chain: Optional[str] = None
    metadata_hash: Optional[str] = None


class TransferTokenRequest(BaseModel):
    new_owner_id: str = Field(..., min_length=1)


class RevokeTokenRequest(BaseModel):
    reason: Optional[str] = None


class PortfolioBucketResponse(BaseModel):
    chain: str
    count: int
    total_investment: int
    total_current_value: int
    total_returns: int
    roi_percent: Decimal

    model_config = ConfigDict(from_attributes=True)


class PortfolioResponse(BaseModel):
    owner_id: str
    overall: PortfolioBucketResponse
    by_chain: list[PortfolioBucketResponse]
    tokens: list[TokenResponse]

    model_config = ConfigDict(from_attributes=True)
