"""Enums for the Wallet Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class WalletStatus(str, enum.Enum):
    ACTIVE = "active"
    PENDING = "pending"  # awaiting custody confirmation (wallet.created)
    FROZEN = "frozen"
    CLOSED = "closed"


class TransactionType(str, enum.Enum):
    PAYOUT = "payout"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DRIVER_EARNING = "driver_earning"
    INVESTMENT = "investment"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"


class TransactionDirection(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
