"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    wallet = WalletFactory.create(balance=500)
    db_session.add(wallet)
    await db_session.commit()
"""

import secrets
import uuid
from datetime import datetime, timezone
from decimal import Decimal

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def unique_owner(prefix: str = "owner") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def unique_reference(prefix: str = "ref") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


# ---------------------------------------------------------------------------
# Wallet Service
# ---------------------------------------------------------------------------


class WalletFactory:
    @staticmethod
    def create(**overrides):
        from services.wallet_service.models import Wallet, WalletStatus

        balance = overrides.get("balance", 0)
        defaults = {
            "id": _uuid(),
            "owner_id": unique_owner(),
            "address": "0x" + secrets.token_hex(20),
            "balance": balance,
            "currency": "NGN",
            "lifetime_credited": balance,
            "lifetime_debited": 0,
            "status": WalletStatus.ACTIVE,
            "version": 0,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Wallet(**defaults)


class WalletTransactionFactory:
    """Completed opening-balance entry so a factory wallet reconciles."""

    @staticmethod
    def create(wallet_id=None, **overrides):
        from services.wallet_service.models import (
            TransactionDirection,
            TransactionStatus,
            TransactionType,
            WalletTransaction,
        )

        amount = overrides.get("amount", 100)
        defaults = {
            "id": _uuid(),
            "wallet_id": wallet_id or _uuid(),
            "reference": unique_reference("opening"),
            "transaction_type": TransactionType.DEPOSIT,
            "direction": TransactionDirection.CREDIT,
            "amount": amount,
            "balance_before": 0,
            "balance_after": amount,
            "status": TransactionStatus.COMPLETED,
            "description": "Opening balance",
            "service_source": "tests",
            "completed_at": _now(),
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return WalletTransaction(**defaults)


# ---------------------------------------------------------------------------
# Ownership Service
# ---------------------------------------------------------------------------


class AssetFactory:
    @staticmethod
    def create(**overrides):
        from services.ownership_service.models import Asset, AssetType

        defaults = {
            "id": _uuid(),
            "asset_type": AssetType.VEHICLE,
            "name": "EV Scooter",
            "external_ref": unique_reference("veh"),
            "original_value": 1_500_000,
            "current_value": 1_500_000,
            "is_tokenized": False,
            "operator_id": "operator-1",
            "ownership_version": 0,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Asset(**defaults)


class OwnershipTokenFactory:
    @staticmethod
    def create(asset_id=None, **overrides):
        from services.ownership_service.models import OwnershipToken, TokenStatus

        investment = overrides.get("investment_amount", 100_000)
        defaults = {
            "id": _uuid(),
            "token_id": "TKN_" + secrets.token_hex(10).upper(),
            "asset_id": asset_id or _uuid(),
            "owner_id": unique_owner("investor"),
            "fraction_owned": Decimal("10"),
            "investment_amount": investment,
            "total_returns": 0,
            "current_value": investment,
            "status": TokenStatus.ACTIVE,
            "tx_hash": "0x" + secrets.token_hex(32),
            "chain": "bantu-testnet",
            "minted_at": _now(),
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return OwnershipToken(**defaults)
