"""Money columns must hold amounts beyond the 32-bit range."""

import pytest
from services.ownership_service.models import Asset, OwnershipToken
from services.payouts_service.models import Payout, PayoutBatch
from services.revenue_service.models import RevenueEvent
from services.wallet_service.models import Wallet, WalletTransaction
from sqlalchemy import BigInteger

MONEY_COLUMNS = [
    (Wallet, "balance"),
    (Wallet, "lifetime_credited"),
    (Wallet, "lifetime_debited"),
    (WalletTransaction, "amount"),
    (WalletTransaction, "balance_before"),
    (WalletTransaction, "balance_after"),
    (Asset, "original_value"),
    (Asset, "current_value"),
    (OwnershipToken, "investment_amount"),
    (OwnershipToken, "total_returns"),
    (OwnershipToken, "current_value"),
    (RevenueEvent, "gross_amount"),
    (RevenueEvent, "investor_amount"),
    (RevenueEvent, "rider_amount"),
    (RevenueEvent, "management_amount"),
    (RevenueEvent, "maintenance_amount"),
    (PayoutBatch, "total_amount"),
    (PayoutBatch, "distributed_amount"),
    (Payout, "amount"),
]


@pytest.mark.unit
@pytest.mark.parametrize(
    "model,column", MONEY_COLUMNS, ids=[f"{m.__name__}.{c}" for m, c in MONEY_COLUMNS]
)
def test_money_column_is_bigint(model, column):
    assert isinstance(model.__table__.c[column].type, BigInteger)
