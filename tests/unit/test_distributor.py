"""Unit tests for payout distribution across an asset's owners."""

import asyncio
from decimal import Decimal

import pytest
from libs.auth.models import ROLE_ADMIN, ROLE_INVESTOR, ROLE_OPERATOR, AuthUser
from libs.common.errors import Unauthorized, ValidationFailed
from services.ownership_service.services.registry import get_token
from services.payouts_service.models import PayoutBatchStatus, PayoutStatus
from services.payouts_service.services import distributor
from services.payouts_service.services.custody import (
    CustodyError,
    PayoutResult,
    SandboxProvider,
)
from services.payouts_service.services.distributor import compute_share, distribute
from services.payouts_service.services.settlement import batch_status_for
from services.wallet_service.models import (
    TransactionStatus,
    WalletStatus,
    WalletTransaction,
)
from services.wallet_service.services.wallet_ops import (
    get_wallet_by_owner,
    reconcile_wallet,
    set_wallet_status,
)
from sqlalchemy import select
from tests.factories import AssetFactory, OwnershipTokenFactory, WalletFactory

OPERATOR = AuthUser(user_id="operator-1", role=ROLE_OPERATOR)
ADMIN = AuthUser(user_id="admin-1", role=ROLE_ADMIN)


async def _seed(db, fractions, *, without_wallet=()):
    """Asset operated by ``operator-1`` with one active token per fraction.

    Returns ``(asset_id, [(owner_id, token_pk), ...])``.
    """
    asset = AssetFactory.create(operator_id=OPERATOR.user_id, is_tokenized=True)
    db.add(asset)
    owners = []
    for i, fraction in enumerate(fractions):
        owner_id = f"investor-{i}"
        token = OwnershipTokenFactory.create(
            asset_id=asset.id, owner_id=owner_id, fraction_owned=Decimal(str(fraction))
        )
        db.add(token)
        if owner_id not in without_wallet:
            db.add(WalletFactory.create(owner_id=owner_id))
        owners.append((owner_id, token.id))
    await db.commit()
    return asset.id, owners


# ---------------------------------------------------------------------------
# Shares and status
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_compute_share_rounds_half_up():
    assert compute_share(Decimal("60"), Decimal("100"), 1000) == 600
    assert compute_share(Decimal("1"), Decimal("3"), 100) == 33
    assert compute_share(Decimal("1"), Decimal("8"), 100) == 13  # 12.5


@pytest.mark.unit
def test_batch_status_for_counts():
    assert batch_status_for({PayoutStatus.COMPLETED: 2}) == PayoutBatchStatus.COMPLETED
    assert (
        batch_status_for({PayoutStatus.COMPLETED: 1, PayoutStatus.FAILED: 1})
        == PayoutBatchStatus.PARTIALLY_COMPLETED
    )
    assert batch_status_for({PayoutStatus.FAILED: 2}) == PayoutBatchStatus.FAILED
    assert (
        batch_status_for({PayoutStatus.PENDING: 1, PayoutStatus.COMPLETED: 1})
        == PayoutBatchStatus.PENDING
    )


# ---------------------------------------------------------------------------
# distribute
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_distribute_pro_rata(db_session, provider):
    asset_id, owners = await _seed(db_session, [60, 40])

    result = await distribute(
        db_session,
        provider,
        asset_id=asset_id,
        total_amount=1000,
        caller=OPERATOR,
        period="2025-11",
    )

    amounts = {d.owner_id: d.amount for d in result.distributions}
    assert amounts == {"investor-0": 600, "investor-1": 400}
    assert all(d.status == PayoutStatus.COMPLETED for d in result.distributions)
    assert result.batch.status == PayoutBatchStatus.COMPLETED
    assert result.batch.distributed_amount == 1000
    assert result.external_tx_hash is not None

    wallet = await get_wallet_by_owner(db_session, "investor-0")
    assert wallet.balance == 600
    assert (await reconcile_wallet(db_session, wallet.id)).consistent

    token = await get_token(db_session, owners[0][1])
    assert token.total_returns == 600


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unsold_fraction_lowers_denominator(db_session, provider):
    """Owners of 30% and 20% split the whole amount 3:2."""
    asset_id, _ = await _seed(db_session, [30, 20])

    result = await distribute(
        db_session, provider, asset_id=asset_id, total_amount=1000, caller=ADMIN
    )

    assert sorted(d.amount for d in result.distributions) == [400, 600]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_missing_wallet_fails_only_that_payout(db_session, provider):
    asset_id, _ = await _seed(db_session, [60, 40], without_wallet=("investor-1",))

    result = await distribute(
        db_session, provider, asset_id=asset_id, total_amount=1000, caller=OPERATOR
    )

    by_owner = {d.owner_id: d for d in result.distributions}
    assert by_owner["investor-0"].status == PayoutStatus.COMPLETED
    assert by_owner["investor-1"].status == PayoutStatus.FAILED
    assert by_owner["investor-1"].failure_reason == "wallet not found"
    assert result.batch.status == PayoutBatchStatus.PARTIALLY_COMPLETED
    assert result.batch.distributed_amount == 600


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "caller",
    [
        AuthUser(user_id="operator-2", role=ROLE_OPERATOR),
        AuthUser(user_id="operator-1", role=ROLE_INVESTOR),
    ],
)
async def test_only_admin_or_asset_operator_may_distribute(db_session, provider, caller):
    asset_id, _ = await _seed(db_session, [100])

    with pytest.raises(Unauthorized) as exc_info:
        await distribute(
            db_session, provider, asset_id=asset_id, total_amount=1000, caller=caller
        )

    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
@pytest.mark.unit
async def test_asset_without_owners_rejected(db_session, provider):
    asset_id, _ = await _seed(db_session, [])

    with pytest.raises(ValidationFailed):
        await distribute(
            db_session, provider, asset_id=asset_id, total_amount=1000, caller=ADMIN
        )


class _SlowProvider(SandboxProvider):
    async def initiate_payout(self, request):
        await asyncio.sleep(5)
        return PayoutResult(reference=request.reference, status="completed", tx_hash="0x1")


class _FailingProvider(SandboxProvider):
    async def initiate_payout(self, request):
        raise CustodyError("custody unavailable", status_code=503)


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("provider_cls", [_SlowProvider, _FailingProvider])
async def test_provider_timeout_or_error_leaves_payouts_pending(
    db_session, monkeypatch, provider_cls
):
    monkeypatch.setattr(distributor.settings, "CUSTODY_TIMEOUT_SECONDS", 0.05)
    asset_id, _ = await _seed(db_session, [50, 50])

    result = await distribute(
        db_session,
        provider_cls(webhook_secret="s"),
        asset_id=asset_id,
        total_amount=1000,
        caller=OPERATOR,
    )

    assert result.batch.status == PayoutBatchStatus.PENDING
    assert all(d.status == PayoutStatus.PENDING for d in result.distributions)

    wallet = await get_wallet_by_owner(db_session, "investor-0")
    assert wallet.balance == 0
    pending = await db_session.execute(
        select(WalletTransaction).where(WalletTransaction.wallet_id == wallet.id)
    )
    entries = pending.scalars().all()
    assert [e.status for e in entries] == [TransactionStatus.PENDING]
    assert entries[0].amount == 500


class _WalletClosingProvider(SandboxProvider):
    """Closes one owner's wallet while the payout is in flight."""

    def __init__(self, db, owner_id):
        super().__init__()
        self.db = db
        self.owner_id = owner_id

    async def initiate_payout(self, request):
        wallet = await get_wallet_by_owner(self.db, self.owner_id)
        await set_wallet_status(
            self.db,
            wallet_id=wallet.id,
            status=WalletStatus.CLOSED,
            actor="admin-1",
            commit=False,
        )
        return await super().initiate_payout(request)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_wallet_closed_before_settlement_fails_only_that_payout(db_session):
    asset_id, _ = await _seed(db_session, [60, 40])

    result = await distribute(
        db_session,
        _WalletClosingProvider(db_session, "investor-1"),
        asset_id=asset_id,
        total_amount=1000,
        caller=OPERATOR,
    )

    by_owner = {d.owner_id: d for d in result.distributions}
    assert by_owner["investor-0"].status == PayoutStatus.COMPLETED
    assert by_owner["investor-1"].status == PayoutStatus.FAILED
    assert by_owner["investor-1"].failure_reason == "wallet closed"
    assert result.batch.status == PayoutBatchStatus.PARTIALLY_COMPLETED

    assert (await get_wallet_by_owner(db_session, "investor-0")).balance == 600
    closed = await get_wallet_by_owner(db_session, "investor-1")
    assert closed.balance == 0
    assert (await reconcile_wallet(db_session, closed.id)).pending_entries == 0
