"""Wallet Service models package.

Re-exports all models and enums so that:
  - ``from services.wallet_service.models import Wallet`` works
  - Alembic env.py sees every table on import

When adding a new model, add both its import and its __all__ entry.
"""

from services.wallet_service.models.enums import (  # noqa: F401
    TransactionDirection,
    TransactionStatus,
    TransactionType,
    WalletStatus,
)
from services.wallet_service.models.transaction import WalletTransaction  # noqa: F401
from services.wallet_service.models.wallet import Wallet  # noqa: F401

__all__ = [
    # Enums
    "TransactionDirection",
    "TransactionStatus",
    "TransactionType",
    "WalletStatus",
    # Models
    "Wallet",
    "WalletTransaction",
]
