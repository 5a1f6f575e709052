"""Transaction request/response schemas."""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from services.wallet_service.models.enums import (
    TransactionDirection,
    TransactionStatus,
    TransactionType,
)


class TransactionResponse(BaseModel):
    id: uuid.UUID
    wallet_id: uuid.UUID
    reference: str
    transaction_type: TransactionType
    direction: TransactionDirection
    amount: int
    balance_before: Optional[int] = None
    balance_after: Optional[int] = None
    status: TransactionStatus
    description: str
    service_source: Optional[str] = None
    initiated_by: Optional[str] = None
    failure_reason: Optional[str] = None
    metadata: Optional[dict[str, Any]] = Field(
        default=None, validation_alias="txn_metadata"
    )
    completed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int
    skip: int
    limit: int


class DebitRequest(BaseModel):
    """Request from another service to debit a wallet."""

    wallet_id: uuid.UUID
    amount: int = Field(..., gt=0, description="Minor units")
    reference: str = Field(..., min_length=1)
    transaction_type: TransactionType = TransactionType.WITHDRAWAL
    description: str = "Wallet debit"
    service_source: str
    metadata: Optional[dict[str, Any]] = None


class CreditRequest(BaseModel):
    """Request from another service to credit a wallet."""

    wallet_id: uuid.UUID
    amount: int = Field(..., gt=0, description="Minor units")
    reference: str = Field(..., min_length=1)
    transaction_type: TransactionType = TransactionType.DEPOSIT
    description: str = "Wallet credit"
    service_source: str
    metadata: Optional[dict[str, Any]] = None


class TransferRequest(BaseModel):
    to_address: str = Field(..., min_length=42, max_length=42)
    amount: int = Field(..., gt=0, description="Minor units")
    reference: str = Field(..., min_length=1)
    description: Optional[str] = None


class TransferResponse(BaseModel):
    debit: TransactionResponse
    credit: TransactionResponse


class InternalDebitCreditResponse(BaseModel):
    success: bool
    transaction_id: uuid.UUID
    balance_after: Optional[int] = None
