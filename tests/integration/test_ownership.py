"""Integration tests for ownership_service asset and token endpoints."""

from decimal import Decimal

import pytest
from libs.auth.models import ROLE_ADMIN, ROLE_SERVICE


async def _register(client, auth, **overrides):
    auth.login("admin-1", ROLE_ADMIN)
    body = {
        "asset_type": "vehicle",
        "name": "Tricycle KJA-221",
        "original_value": 1_800_000,
        "operator_id": "operator-1",
        **overrides,
    }
    resp = await client.post("/assets", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _mint(client, asset_id, owner_id, fraction, investment=100_000):
    return await client.post(
        "/tokens/mint",
        json={
            "asset_id": asset_id,
            "owner_id": owner_id,
            "fraction": str(fraction),
            "investment_amount": investment,
        },
    )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_register_asset_admin_only(ownership_client, auth):
    auth.login("investor-1")

    response = await ownership_client.post(
        "/assets",
        json={"asset_type": "battery", "name": "Pack", "original_value": 10},
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_mint_overflow_returns_409_with_remaining(ownership_client, auth):
    asset = await _register(ownership_client, auth)

    first = await _mint(ownership_client, asset["id"], "investor-1", 60)
    assert first.status_code == 201, first.text
    assert first.json()["status"] == "active"
    assert first.json()["tx_hash"].startswith("0x")

    refused = await _mint(ownership_client, asset["id"], "investor-2", 50)
    assert refused.status_code == 409
    detail = refused.json()["detail"]
    assert detail["error"] == "insufficient_remaining_ownership"
    assert detail["remaining"] == 40

    remaining = await ownership_client.get(f"/assets/{asset['id']}/remaining")
    assert Decimal(remaining.json()["remaining"]) == Decimal("40")
    assert Decimal(remaining.json()["allocated"]) == Decimal("60")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_mint_allowed_for_service_role(ownership_client, auth):
    asset = await _register(ownership_client, auth, asset_type="cabinet")

    auth.login("svc-investments", ROLE_SERVICE)
    response = await _mint(ownership_client, asset["id"], "investor-5", "12.5")

    assert response.status_code == 201, response.text
    assert Decimal(response.json()["fraction_owned"]) == Decimal("12.5")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_mint_fraction_validated(ownership_client, auth):
    asset = await _register(ownership_client, auth)

    response = await _mint(ownership_client, asset["id"], "investor-1", 150)

    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_token_visible_to_owner_only(ownership_client, auth):
    asset = await _register(ownership_client, auth)
    token = (await _mint(ownership_client, asset["id"], "investor-1", 10)).json()

    auth.login("investor-1")
    mine = await ownership_client.get(f"/tokens/{token['id']}")
    auth.login("investor-2")
    theirs = await ownership_client.get(f"/tokens/{token['id']}")

    assert mine.status_code == 200
    assert theirs.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_confirm_with_different_hash_conflicts(ownership_client, auth):
    asset = await _register(ownership_client, auth)
    token = (await _mint(ownership_client, asset["id"], "investor-1", 10)).json()

    same = await ownership_client.post(
        f"/tokens/{token['id']}/confirm", json={"tx_hash": token["tx_hash"]}
    )
    other = await ownership_client.post(
        f"/tokens/{token['id']}/confirm", json={"tx_hash": "0xdifferent"}
    )

    assert same.status_code == 200
    assert other.status_code == 409
    assert other.json()["detail"]["tx_hash"] == token["tx_hash"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_transfer_and_revoke(ownership_client, auth):
    asset = await _register(ownership_client, auth)
    token = (await _mint(ownership_client, asset["id"], "investor-1", 30)).json()

    moved = await ownership_client.post(
        f"/tokens/{token['id']}/transfer", json={"new_owner_id": "investor-3"}
    )
    assert moved.json()["owner_id"] == "investor-3"
    assert moved.json()["previous_owner_id"] == "investor-1"

    revoked = await ownership_client.post(
        f"/tokens/{token['id']}/revoke", json={"reason": "Buy-back"}
    )
    assert revoked.json()["status"] == "revoked"

    remaining = await ownership_client.get(f"/assets/{asset['id']}/remaining")
    assert Decimal(remaining.json()["remaining"]) == Decimal("100")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_portfolio_me(ownership_client, auth):
    asset = await _register(ownership_client, auth)
    await _mint(ownership_client, asset["id"], "investor-4", 20, investment=360_000)
    await _mint(ownership_client, asset["id"], "investor-4", 5, investment=90_000)

    auth.login("investor-4")
    response = await ownership_client.get("/tokens/portfolio/me")

    assert response.status_code == 200
    data = response.json()
    assert data["owner_id"] == "investor-4"
    assert data["overall"]["count"] == 2
    assert data["overall"]["total_investment"] == 450_000
    assert len(data["tokens"]) == 2
