"""Unit tests for custody webhook reconciliation."""

import json

import pytest
from libs.auth.models import ROLE_ADMIN, AuthUser
from libs.common.config import get_settings
from services.ownership_service.models import OwnershipToken, TokenStatus
from services.ownership_service.services import registry
from services.payouts_service.models import (
    Payout,
    PayoutBatchStatus,
    PayoutStatus,
    WebhookLog,
    WebhookLogStatus,
)
from services.payouts_service.services.custody import (
    PayoutResult,
    SandboxProvider,
    compute_signature,
)
from services.payouts_service.services.distributor import distribute, get_batch
from services.payouts_service.services.reconciler import (
    HANDLERS,
    WebhookEventType,
    reconcile_delivery,
)
from services.wallet_service.models import WalletStatus
from services.wallet_service.services.wallet_ops import (
    find_wallet_by_owner,
    get_wallet_by_owner,
    reconcile_wallet,
    set_wallet_status,
)
from sqlalchemy import select
from tests.factories import (
    AssetFactory,
    OwnershipTokenFactory,
    WalletFactory,
    unique_owner,
)

ADMIN = AuthUser(user_id="admin-1", role=ROLE_ADMIN)
WEBHOOK_SECRET = get_settings().CUSTODY_WEBHOOK_SECRET


def _body(event_type, **data) -> bytes:
    return json.dumps({"event_type": event_type, "data": data}).encode()


async def _deliver(db, provider, raw_body, signature=None):
    if signature is None:
        signature = compute_signature(WEBHOOK_SECRET, raw_body)
    return await reconcile_delivery(
        db, provider, raw_body=raw_body, signature=signature
    )


async def _logs(db):
    result = await db.execute(
        select(WebhookLog)
        .order_by(WebhookLog.created_at)
        .execution_options(populate_existing=True)
    )
    return result.scalars().all()


class _PendingPayoutProvider(SandboxProvider):
    async def initiate_payout(self, request):
        return PayoutResult(reference=request.reference, status="pending")


async def _pending_batch(db):
    """Two-owner batch left pending by the provider."""
    asset = AssetFactory.create(is_tokenized=True)
    db.add(asset)
    tokens = []
    for owner_id, fraction in (("investor-a", 60), ("investor-b", 40)):
        token = OwnershipTokenFactory.create(
            asset_id=asset.id, owner_id=owner_id, fraction_owned=fraction
        )
        db.add(token)
        db.add(WalletFactory.create(owner_id=owner_id))
        tokens.append(token.token_id)
    await db.commit()

    result = await distribute(
        db,
        _PendingPayoutProvider(webhook_secret=WEBHOOK_SECRET),
        asset_id=asset.id,
        total_amount=1000,
        caller=ADMIN,
    )
    assert result.batch.status == PayoutBatchStatus.PENDING
    return result.batch.id, result.batch.reference, tokens


# ---------------------------------------------------------------------------
# Delivery outcomes
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_every_event_type_has_a_handler():
    assert set(HANDLERS) == set(WebhookEventType)


@pytest.mark.unit
def test_unrecognised_event_type_maps_to_unknown():
    assert WebhookEventType("ledger.exploded") == WebhookEventType.UNKNOWN


@pytest.mark.asyncio
@pytest.mark.unit
async def test_bad_signature_rejected_without_log(db_session, provider):
    raw = _body("wallet.created", owner_id="x")

    result = await _deliver(db_session, provider, raw, signature="deadbeef")

    assert result.status_code == 401
    assert await _logs(db_session) == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_missing_signature_rejected(db_session, provider):
    raw = _body("wallet.created", owner_id="x")

    result = await reconcile_delivery(
        db_session, provider, raw_body=raw, signature=None
    )

    assert result.status_code == 401


@pytest.mark.asyncio
@pytest.mark.unit
async def test_bypass_accepts_unsigned_delivery(db_session):
    provider = SandboxProvider(webhook_secret="", bypass_signature=True)

    result = await reconcile_delivery(
        db_session, provider, raw_body=_body("custody.ping"), signature=None
    )

    assert result.status_code == 200


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "raw",
    [b"not json", b"[1, 2]", b'{"data": {}}', b'{"event_type": "x", "data": 5}'],
)
async def test_malformed_body_logged_failed(db_session, provider, raw):
    result = await _deliver(db_session, provider, raw)

    assert result.status_code == 400
    logs = await _logs(db_session)
    assert len(logs) == 1
    assert logs[0].status == WebhookLogStatus.FAILED
    assert logs[0].event_type == "malformed"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_event_acknowledged(db_session, provider):
    result = await _deliver(db_session, provider, _body("fleet.rebalanced", x=1))

    assert result.status_code == 200
    assert result.body == {"received": True}
    logs = await _logs(db_session)
    assert logs[0].status == WebhookLogStatus.PROCESSED
    assert logs[0].event_type == "fleet.rebalanced"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_handler_error_returns_500_and_logs_failure(db_session, provider):
    raw = _body("custody.updated", asset_ref="NO-SUCH-ASSET", status="held")

    result = await _deliver(db_session, provider, raw)

    assert result.status_code == 500
    logs = await _logs(db_session)
    assert logs[0].status == WebhookLogStatus.FAILED
    assert "unknown asset" in logs[0].error


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_wallet_created_replay_processed_once(db_session, provider):
    owner_id = unique_owner()
    raw = _body(
        "wallet.created",
        owner_id=owner_id,
        wallet_address="0x" + "ab" * 20,
        custody_ref="cw_1",
    )

    first = await _deliver(db_session, provider, raw)
    second = await _deliver(db_session, provider, raw)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.log_id == first.log_id
    assert len(await _logs(db_session)) == 1

    wallet = await find_wallet_by_owner(db_session, owner_id)
    assert wallet.custody_ref == "cw_1"
    assert wallet.status == WalletStatus.ACTIVE


@pytest.mark.asyncio
@pytest.mark.unit
async def test_token_minted_confirms_pending_token(db_session, provider):
    asset = AssetFactory.create()
    db_session.add(asset)
    await db_session.commit()
    token = await registry.mint(
        db_session,
        asset_id=asset.id,
        owner_id=unique_owner(),
        fraction=20,
        investment_amount=300_000,
    )
    token_pk, token_id = token.id, token.token_id

    result = await _deliver(
        db_session,
        provider,
        _body("token.minted", token_id=token_id, tx_hash="0xfeed", chain="polygon"),
    )

    assert result.status_code == 200
    confirmed = await registry.get_token(db_session, token_pk)
    assert confirmed.status == TokenStatus.ACTIVE
    assert confirmed.tx_hash == "0xfeed"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_payout_completed_settles_pending_batch_once(db_session, provider):
    batch_id, reference, token_ids = await _pending_batch(db_session)
    assert (await get_wallet_by_owner(db_session, "investor-a")).balance == 0

    raw = _body(
        "payout.completed",
        payout_id=reference,
        tx_hash="0xpaid",
        distributions=[
            {"token_id": token_ids[0], "amount": 600},
            {"token_id": token_ids[1], "amount": 400},
        ],
    )
    first = await _deliver(db_session, provider, raw)
    assert first.status_code == 200

    batch = await get_batch(db_session, batch_id)
    await db_session.refresh(batch)
    assert batch.status == PayoutBatchStatus.COMPLETED
    assert batch.external_tx_hash == "0xpaid"

    wallet_a = await get_wallet_by_owner(db_session, "investor-a")
    assert wallet_a.balance == 600
    assert (await reconcile_wallet(db_session, wallet_a.id)).consistent

    # Exact replay and a re-signed duplicate carrying the same tx hash.
    replay = await _deliver(db_session, provider, raw)
    duplicate = await _deliver(
        db_session,
        provider,
        _body(
            "payout.completed",
            payout_id=reference,
            tx_hash="0xpaid",
            distributions=[{"token_id": token_ids[0], "amount": 600}],
            attempt=2,
        ),
    )

    assert replay.status_code == 200
    assert duplicate.status_code == 200
    assert (await get_wallet_by_owner(db_session, "investor-a")).balance == 600
    assert (await get_wallet_by_owner(db_session, "investor-b")).balance == 400


@pytest.mark.asyncio
@pytest.mark.unit
async def test_payout_failed_marks_pending_payouts(db_session, provider):
    batch_id, reference, _ = await _pending_batch(db_session)

    result = await _deliver(
        db_session,
        provider,
        _body("payout.failed", payout_id=reference, reason="bank rejected"),
    )

    assert result.status_code == 200
    batch = await get_batch(db_session, batch_id)
    await db_session.refresh(batch)
    assert batch.status == PayoutBatchStatus.FAILED

    wallet = await get_wallet_by_owner(db_session, "investor-a")
    assert wallet.balance == 0
    recon = await reconcile_wallet(db_session, wallet.id)
    assert recon.consistent
    assert recon.pending_entries == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_transfer_completed_moves_token(db_session, provider):
    asset = AssetFactory.create()
    db_session.add(asset)
    token = OwnershipTokenFactory.create(asset_id=asset.id, owner_id="alice")
    db_session.add(token)
    await db_session.commit()
    token_pk = token.id

    result = await _deliver(
        db_session,
        provider,
        _body(
            "transfer.completed",
            token_id=token.token_id,
            to_owner_id="bob",
            tx_hash="0xmove",
        ),
    )

    assert result.status_code == 200
    moved = await registry.get_token(db_session, token_pk)
    assert moved.owner_id == "bob"
    assert moved.previous_owner_id == "alice"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_token_minted_creates_unknown_token_once(db_session, provider):
    asset = AssetFactory.create()
    db_session.add(asset)
    await db_session.commit()
    asset_id = asset.id
    owner_id = unique_owner()
    data = {
        "token_id": "TKN_FROM_PROVIDER",
        "tx_hash": "0xmint",
        "asset_id": str(asset_id),
        "owner_id": owner_id,
        "fraction": 25,
        "investment_amount": 375_000,
    }

    first = await _deliver(db_session, provider, _body("token.minted", **data))
    # Re-sent with a different body, so the digest check does not short-circuit.
    again = await _deliver(
        db_session, provider, _body("token.minted", attempt=2, **data)
    )

    assert first.status_code == 200
    assert again.status_code == 200
    result = await db_session.execute(
        select(OwnershipToken).where(OwnershipToken.token_id == "TKN_FROM_PROVIDER")
    )
    tokens = result.scalars().all()
    assert len(tokens) == 1
    assert tokens[0].status == TokenStatus.ACTIVE
    assert tokens[0].owner_id == owner_id
    assert await registry.remaining_ownership(db_session, asset_id) == 75


@pytest.mark.asyncio
@pytest.mark.unit
async def test_batchless_payout_completed_credits_once(db_session, provider):
    asset = AssetFactory.create(is_tokenized=True)
    db_session.add(asset)
    token = OwnershipTokenFactory.create(asset_id=asset.id, owner_id="investor-c")
    db_session.add(token)
    db_session.add(WalletFactory.create(owner_id="investor-c"))
    await db_session.commit()
    token_pk, token_id = token.id, token.token_id

    first = await _deliver(
        db_session,
        provider,
        _body(
            "payout.completed",
            tx_hash="0xdirect",
            period="2025-12",
            distributions=[{"token_id": token_id, "amount": 250}],
        ),
    )
    again = await _deliver(
        db_session,
        provider,
        _body(
            "payout.completed",
            tx_hash="0xdirect",
            period="2025-12",
            distributions=[{"token_id": token_id, "amount": 250}],
            attempt=2,
        ),
    )

    assert first.status_code == 200
    assert again.status_code == 200

    wallet = await get_wallet_by_owner(db_session, "investor-c")
    assert wallet.balance == 250
    assert (await reconcile_wallet(db_session, wallet.id)).consistent

    result = await db_session.execute(select(Payout).where(Payout.token_id == token_pk))
    payouts = result.scalars().all()
    assert len(payouts) == 1
    assert payouts[0].status == PayoutStatus.COMPLETED
    assert payouts[0].batch_id is None
    assert (await registry.get_token(db_session, token_pk)).total_returns == 250


@pytest.mark.asyncio
@pytest.mark.unit
async def test_closed_wallet_fails_only_its_own_payout(db_session, provider):
    batch_id, reference, token_ids = await _pending_batch(db_session)
    wallet_b = await get_wallet_by_owner(db_session, "investor-b")
    await set_wallet_status(
        db_session, wallet_id=wallet_b.id, status=WalletStatus.CLOSED, actor="admin-1"
    )

    raw = _body(
        "payout.completed",
        payout_id=reference,
        tx_hash="0xpaid",
        distributions=[
            {"token_id": token_ids[0], "amount": 600},
            {"token_id": token_ids[1], "amount": 400},
        ],
    )
    codes = [(await _deliver(db_session, provider, raw)).status_code for _ in range(3)]

    assert codes == [200, 200, 200]
    assert (await get_wallet_by_owner(db_session, "investor-a")).balance == 600

    result = await db_session.execute(
        select(Payout)
        .where(Payout.batch_id == batch_id)
        .execution_options(populate_existing=True)
    )
    by_owner = {p.owner_id: p for p in result.scalars().all()}
    assert by_owner["investor-a"].status == PayoutStatus.COMPLETED
    assert by_owner["investor-b"].status == PayoutStatus.FAILED
    assert by_owner["investor-b"].failure_reason == "wallet closed"

    batch = await get_batch(db_session, batch_id)
    await db_session.refresh(batch)
    assert batch.status == PayoutBatchStatus.PARTIALLY_COMPLETED

    recon = await reconcile_wallet(db_session, wallet_b.id)
    assert recon.ledger_balance == 0
    assert recon.pending_entries == 0
