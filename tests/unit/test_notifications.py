"""Unit tests for best-effort payout notifications."""

import uuid

import httpx
import pytest
from services.payouts_service.models import PayoutBatch, PayoutBatchStatus
from services.payouts_service.services import notifications


def _batch() -> PayoutBatch:
    return PayoutBatch(
        id=uuid.uuid4(),
        reference="PB_TEST",
        asset_id=uuid.uuid4(),
        total_amount=1000,
        distributed_amount=1000,
        currency="NGN",
        period="2025-11",
        distributed_by="operator-1",
        status=PayoutBatchStatus.COMPLETED,
    )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_notification_posts_batch_outcome(monkeypatch):
    sent = {}

    async def fake_post(**kwargs):
        sent.update(kwargs)
        return httpx.Response(202, request=httpx.Request("POST", "http://n/x"))

    monkeypatch.setattr(notifications.settings, "NOTIFICATIONS_ENABLED", True)
    monkeypatch.setattr(notifications, "internal_post", fake_post)

    await notifications.notify_batch_outcome(_batch(), [{"owner_id": "a", "amount": 1000}])

    assert sent["calling_service"] == "payouts"
    assert sent["json"]["reference"] == "PB_TEST"
    assert sent["json"]["status"] == "completed"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_notification_failure_is_swallowed(monkeypatch):
    async def failing_post(**kwargs):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(notifications.settings, "NOTIFICATIONS_ENABLED", True)
    monkeypatch.setattr(notifications, "internal_post", failing_post)

    await notifications.notify_batch_outcome(_batch(), [])


@pytest.mark.asyncio
@pytest.mark.unit
async def test_notifications_disabled_skips_call(monkeypatch):
    async def unexpected(**kwargs):
        raise AssertionError("should not be called")

    monkeypatch.setattr(notifications.settings, "NOTIFICATIONS_ENABLED", False)
    monkeypatch.setattr(notifications, "internal_post", unexpected)

    await notifications.notify_batch_outcome(_batch(), [])
