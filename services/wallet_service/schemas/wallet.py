"""Wallet request/response schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.wallet_service.models.enums import WalletStatus


class WalletResponse(BaseModel):
    id: uuid.UUID
    owner_id: str
    address: str
    custody_ref: Optional[str] = None
    balance: int
    currency: str
    lifetime_credited: int
    lifetime_debited: int
    status: WalletStatus
    frozen_reason: Optional[str] = None
    frozen_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WalletCreateRequest(BaseModel):
    """Used by the onboarding flow to open a wallet for a new user."""

    owner_id: str
    currency: Optional[str] = Field(default=None, max_length=8)
    custody_ref: Optional[str] = None
    pending_custody: bool = Field(
        default=False,
        description="Open the wallet as pending until custody confirms it",
    )
