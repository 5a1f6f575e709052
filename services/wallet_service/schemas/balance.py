"""Balance and reconciliation schemas."""

import uuid

from pydantic import BaseModel
from services.wallet_service.models.enums import WalletStatus


class BalanceResponse(BaseModel):
    wallet_id: uuid.UUID
    owner_id: str
    balance: int
    currency: str
    status: WalletStatus


class ReconciliationResponse(BaseModel):
    wallet_id: uuid.UUID
    cached_balance: int
    ledger_balance: int
    completed_entries: int
    pending_entries: int
    consistent: bool
