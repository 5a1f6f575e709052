"""Integration tests for revenue_service endpoints."""

import pytest
from libs.auth.models import ROLE_ADMIN, ROLE_OPERATOR, ROLE_SERVICE
from tests.factories import AssetFactory, unique_reference


async def _asset_id(db_session):
    asset = AssetFactory.create()
    db_session.add(asset)
    await db_session.commit()
    return str(asset.id)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_record_event_and_replay(revenue_client, auth, db_session):
    asset_id = await _asset_id(db_session)
    auth.login("svc-rentals", ROLE_SERVICE)
    body = {
        "asset_id": asset_id,
        "gross_amount": 100_000,
        "source_type": "rental",
        "source_reference": unique_reference("rental"),
    }

    first = await revenue_client.post("/revenue/events", json=body)
    replay = await revenue_client.post("/revenue/events", json=body)

    assert first.status_code == 201, first.text
    data = first.json()
    assert data["investor_amount"] == 50_000
    assert data["rider_amount"] == 30_000
    assert data["management_amount"] == 15_000
    assert data["maintenance_amount"] == 5_000
    assert replay.json()["id"] == data["id"]

    changed = await revenue_client.post(
        "/revenue/events", json={**body, "gross_amount": 90_000}
    )
    assert changed.status_code == 409


@pytest.mark.asyncio
@pytest.mark.integration
async def test_investor_cannot_record_revenue(revenue_client, auth, db_session):
    asset_id = await _asset_id(db_session)
    auth.login("investor-1")

    response = await revenue_client.post(
        "/revenue/events",
        json={
            "asset_id": asset_id,
            "gross_amount": 100,
            "source_reference": unique_reference(),
        },
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_ride_priced_by_distance(revenue_client, auth, db_session):
    asset_id = await _asset_id(db_session)
    auth.login("svc-rides", ROLE_SERVICE)

    response = await revenue_client.post(
        "/revenue/rides",
        json={"asset_id": asset_id, "ride_id": "ride-881", "distance_km": "12.4"},
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["source_type"] == "ride"
    assert data["gross_amount"] == 1_550
    assert sum(
        data[k]
        for k in ("investor_amount", "rider_amount", "management_amount", "maintenance_amount")
    ) == 1_550


@pytest.mark.asyncio
@pytest.mark.integration
async def test_compensate_and_summary(revenue_client, auth, db_session):
    asset_id = await _asset_id(db_session)
    auth.login("svc-swaps", ROLE_SERVICE)
    kept = await revenue_client.post(
        "/revenue/events",
        json={
            "asset_id": asset_id,
            "gross_amount": 20_000,
            "source_type": "swap",
            "source_reference": unique_reference("swap"),
        },
    )
    reversed_event = await revenue_client.post(
        "/revenue/events",
        json={
            "asset_id": asset_id,
            "gross_amount": 8_000,
            "source_type": "swap",
            "source_reference": unique_reference("swap"),
        },
    )
    assert kept.status_code == 201

    auth.login("admin-1", ROLE_ADMIN)
    compensation = await revenue_client.post(
        f"/revenue/events/{reversed_event.json()['id']}/compensate",
        json={"reason": "Swap recorded twice"},
    )
    assert compensation.status_code == 201, compensation.text
    assert compensation.json()["gross_amount"] == -8_000

    auth.login("operator-1", ROLE_OPERATOR)
    summary = await revenue_client.get(f"/revenue/assets/{asset_id}/summary")

    assert summary.status_code == 200, summary.text
    data = summary.json()
    assert data["event_count"] == 3
    assert data["gross_amount"] == 20_000
    assert data["investor_amount"] == 10_000
    assert data["available_investor_pool"] == 10_000
