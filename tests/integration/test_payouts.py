"""Integration tests for payouts_service distribution and webhook endpoints."""

import json
from decimal import Decimal

import pytest
from libs.auth.models import ROLE_INVESTOR, ROLE_OPERATOR
from libs.common.config import get_settings
from services.payouts_service.services.custody import compute_signature
from tests.factories import AssetFactory, OwnershipTokenFactory, WalletFactory

settings = get_settings()


async def _seed_asset(db_session, fractions=(60, 40)):
    asset = AssetFactory.create(operator_id="operator-1", is_tokenized=True)
    db_session.add(asset)
    for i, fraction in enumerate(fractions):
        owner_id = f"investor-{i + 1}"
        db_session.add(
            OwnershipTokenFactory.create(
                asset_id=asset.id, owner_id=owner_id, fraction_owned=Decimal(fraction)
            )
        )
        db_session.add(WalletFactory.create(owner_id=owner_id))
    await db_session.commit()
    return str(asset.id)


def _signed(payload: dict) -> tuple[bytes, dict]:
    raw = json.dumps(payload).encode()
    headers = {
        settings.CUSTODY_WEBHOOK_SIGNATURE_HEADER: compute_signature(
            settings.CUSTODY_WEBHOOK_SECRET, raw
        ),
        "Content-Type": "application/json",
    }
    return raw, headers


# ---------------------------------------------------------------------------
# Distribution
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_distribute_and_read_back(payouts_client, auth, db_session):
    asset_id = await _seed_asset(db_session)
    auth.login("operator-1", ROLE_OPERATOR)

    response = await payouts_client.post(
        "/payouts/distribute",
        json={"asset_id": asset_id, "total_amount": 1_000, "period": "2025-11"},
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["status"] == "completed"
    assert data["distributed_amount"] == 1_000
    assert sorted(d["amount"] for d in data["distributions"]) == [400, 600]
    assert data["external_tx_hash"].startswith("0x")

    batch = await payouts_client.get(f"/payouts/batches/{data['payout_batch_id']}")
    assert batch.status_code == 200, batch.text
    assert len(batch.json()["payouts"]) == 2

    auth.login("investor-1", ROLE_INVESTOR)
    mine = await payouts_client.get("/payouts/me")
    payouts = mine.json()["payouts"]
    assert [p["amount"] for p in payouts] == [600]
    assert payouts[0]["status"] == "completed"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_distribute_refused_for_other_operator(payouts_client, auth, db_session):
    asset_id = await _seed_asset(db_session)
    auth.login("operator-2", ROLE_OPERATOR)

    response = await payouts_client.post(
        "/payouts/distribute", json={"asset_id": asset_id, "total_amount": 1_000}
    )

    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "unauthorized"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_distribute_requires_operator_role(payouts_client, auth, db_session):
    asset_id = await _seed_asset(db_session)
    auth.login("investor-1", ROLE_INVESTOR)

    response = await payouts_client.post(
        "/payouts/distribute", json={"asset_id": asset_id, "total_amount": 1_000}
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_distribute_rejects_non_positive_amount(payouts_client, auth, db_session):
    asset_id = await _seed_asset(db_session)
    auth.login("operator-1", ROLE_OPERATOR)

    response = await payouts_client.post(
        "/payouts/distribute", json={"asset_id": asset_id, "total_amount": 0}
    )

    assert response.status_code == 422


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_webhook_requires_valid_signature(payouts_client):
    raw, headers = _signed({"event_type": "custody.ping", "data": {}})
    headers[settings.CUSTODY_WEBHOOK_SIGNATURE_HEADER] = "0" * 64

    response = await payouts_client.post("/webhooks/custody", content=raw, headers=headers)

    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.integration
async def test_webhook_wallet_created_and_replay(payouts_client, auth, db_session):
    raw, headers = _signed(
        {
            "event_type": "wallet.created",
            "data": {"owner_id": "investor-42", "custody_ref": "cw_42"},
        }
    )

    first = await payouts_client.post("/webhooks/custody", content=raw, headers=headers)
    replay = await payouts_client.post("/webhooks/custody", content=raw, headers=headers)

    assert first.status_code == 200
    assert first.json() == {"received": True}
    assert replay.status_code == 200


@pytest.mark.asyncio
@pytest.mark.integration
async def test_webhook_malformed_body(payouts_client):
    raw = b"{not json"
    headers = {
        settings.CUSTODY_WEBHOOK_SIGNATURE_HEADER: compute_signature(
            settings.CUSTODY_WEBHOOK_SECRET, raw
        )
    }

    response = await payouts_client.post("/webhooks/custody", content=raw, headers=headers)

    assert response.status_code == 400
