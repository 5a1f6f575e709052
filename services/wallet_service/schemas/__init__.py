"""Wallet Service schemas package.

Re-exports all schemas so that:
  - ``from services.wallet_service.schemas import WalletResponse`` works
  - Router files need no import path changes

IMPORTANT: Every schema class must be listed here.
When adding a new schema, add its import and __all__ entry.
"""

from services.wallet_service.schemas.admin import (  # noqa: F401
    FreezeWalletRequest,
    UnfreezeWalletRequest,
)
from services.wallet_service.schemas.balance import (  # noqa: F401
    BalanceResponse,
    ReconciliationResponse,
)
from services.wallet_service.schemas.transaction import (  # noqa: F401
    CreditRequest,
    DebitRequest,
    InternalDebitCreditResponse,
    TransactionListResponse,
    TransactionResponse,
    TransferRequest,
    TransferResponse,
)
from services.wallet_service.schemas.wallet import (  # noqa: F401
    WalletCreateRequest,
    WalletResponse,
)

__all__ = [
    # Wallet
    "WalletCreateRequest",
    "WalletResponse",
    # Transaction
    "CreditRequest",
    "DebitRequest",
    "InternalDebitCreditResponse",
    "TransactionListResponse",
    "TransactionResponse",
    "TransferRequest",
    "TransferResponse",
    # Balance
    "BalanceResponse",
    "ReconciliationResponse",
    # Admin
    "FreezeWalletRequest",
    "UnfreezeWalletRequest",
]
