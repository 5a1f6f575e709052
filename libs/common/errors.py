"""Typed errors raised from the service layer.

Each subclasses ``HTTPException`` so routers let them propagate and FastAPI
renders ``{"detail": {"error": <code>, "message": ..., ...}}``. Service
callers catch them by type and read the structured attributes.
"""

from decimal import Decimal
from typing import Any, Optional

from fastapi import HTTPException, status


class LedgerError(HTTPException):
    code = "ledger_error"
    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        detail = {"error": self.code, "message": message}
        detail.update({k: _jsonable(v) for k, v in extra.items()})
        super().__init__(status_code=self.status_code_default, detail=detail)


class ValidationFailed(LedgerError):
    code = "validation_failed"


class NotFound(LedgerError):
    code = "not_found"
    status_code_default = status.HTTP_404_NOT_FOUND


class Unauthorized(LedgerError):
    code = "unauthorized"
    status_code_default = status.HTTP_403_FORBIDDEN


class WalletNotActive(LedgerError):
    code = "wallet_not_active"


class InsufficientRemainingOwnership(LedgerError):
    code = "insufficient_remaining_ownership"
    status_code_default = status.HTTP_409_CONFLICT

    def __init__(self, remaining: Decimal, requested: Decimal):
        self.remaining = remaining
        self.requested = requested
        super().__init__(
            f"Requested {requested}% but only {remaining}% of the asset remains",
            remaining=remaining,
            requested=requested,
        )


class InsufficientBalance(LedgerError):
    code = "insufficient_balance"
    status_code_default = status.HTTP_409_CONFLICT

    def __init__(self, balance: Optional[int], requested: int):
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient balance for debit of {requested}",
            balance=balance,
            requested=requested,
        )


class DuplicateTransaction(LedgerError):
    code = "duplicate_transaction"
    status_code_default = status.HTTP_409_CONFLICT


class Conflict(LedgerError):
    code = "conflict"
    status_code_default = status.HTTP_409_CONFLICT


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        # 40.0000 -> 40, 12.5000 -> 12.5
        normalized = value.normalize()
        return int(normalized) if normalized == normalized.to_integral() else float(normalized)
    return value
