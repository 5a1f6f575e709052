"""Webhook Reconciler: apply custody provider events idempotently.

Per delivery:

    received -> signature invalid            -> 401, nothing logged
    received -> body not JSON                -> 400, log(failed)
    received -> digest already processed     -> 200, handlers not re-run
    received -> log(processing) -> handler   -> log(processed), 200
                                 \\-> error   -> rollback, log(failed), 500

Every handler is safe to run twice with the same payload, and all of one
delivery's effects commit together with its log update.
"""

import enum
import hashlib
import json
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from libs.common.datetime_utils import parse_provider_timestamp, utc_now
from libs.common.errors import NotFound, ValidationFailed
from libs.common.logging import get_logger
from services.ownership_service.models import Asset, TokenStatus
from services.ownership_service.services import registry
from services.payouts_service.models import (
    Payout,
    PayoutBatch,
    PayoutStatus,
    WebhookLog,
    WebhookLogStatus,
)
from services.payouts_service.services.custody import CustodyProvider
from services.payouts_service.services.settlement import (
    fail_payout,
    refresh_batch_status,
    settle_payout,
)
from services.wallet_service.models import TransactionType, WalletStatus
from services.wallet_service.services import wallet_ops
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

WEBHOOK_ACTOR = "custody_webhook"


class WebhookEventType(str, enum.Enum):
    TOKEN_MINTED = "token.minted"
    PAYOUT_COMPLETED = "payout.completed"
    PAYOUT_FAILED = "payout.failed"
    TRANSFER_COMPLETED = "transfer.completed"
    WALLET_CREATED = "wallet.created"
    CUSTODY_UPDATED = "custody.updated"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


@dataclass
class WebhookResult:
    status_code: int
    body: dict
    log_id: Optional[uuid.UUID] = None


ACK = {"received": True}


def payload_digest(raw_body: bytes) -> str:
    return hashlib.sha256(raw_body).hexdigest()


def _require(data: dict, key: str) -> Any:
    value = data.get(key)
    if value in (None, ""):
        raise ValidationFailed(f"Webhook payload missing '{key}'")
    return value


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _resolve_asset(db: AsyncSession, data: dict) -> Asset:
    asset_id = data.get("asset_id")
    if asset_id:
        try:
            return await registry.get_asset(db, uuid.UUID(str(asset_id)))
        except ValueError:
            asset = await registry.find_asset_by_external_ref(db, str(asset_id))
            if asset:
                return asset
    external_ref = data.get("asset_ref") or data.get("external_ref")
    if external_ref:
        asset = await registry.find_asset_by_external_ref(db, external_ref)
        if asset:
            return asset
    raise NotFound("Webhook references an unknown asset", asset_id=str(asset_id))


async def _resolve_owner(db: AsyncSession, data: dict, prefix: str = "") -> str:
    owner_id = data.get(f"{prefix}owner_id")
    if owner_id:
        return owner_id
    address = data.get(f"{prefix}wallet_address")
    if address:
        wallet = await wallet_ops.find_wallet_by_address(db, address)
        if wallet:
            return wallet.owner_id
    raise ValidationFailed(f"Webhook payload has no resolvable {prefix}owner")


async def handle_token_minted(
    db: AsyncSession, data: dict, provider: CustodyProvider
) -> dict:
    token_id = _require(data, "token_id")
    tx_hash = _require(data, "tx_hash")
    minted_at = parse_provider_timestamp(data.get("minted_at"))

    token = await registry.find_token_by_external_id(db, token_id)
    if token:
        confirmation = await registry.confirm(
            db,
            token_pk=token.id,
            tx_hash=tx_hash,
            chain=data.get("chain"),
            metadata_hash=data.get("metadata_hash"),
            minted_at=minted_at,
            actor=WEBHOOK_ACTOR,
            commit=False,
        )
        return {"token_id": token_id, "outcome": confirmation.outcome.value}

    asset = await _resolve_asset(db, data)
    owner_id = await _resolve_owner(db, data)
    await registry.mint(
        db,
        asset_id=asset.id,
        owner_id=owner_id,
        fraction=_require(data, "fraction"),
        investment_amount=int(data.get("investment_amount") or 0),
        actor=WEBHOOK_ACTOR,
        token_id=token_id,
        status=TokenStatus.ACTIVE,
        tx_hash=tx_hash,
        chain=data.get("chain") or provider.chain,
        metadata_hash=data.get("metadata_hash"),
        minted_at=minted_at,
        commit=False,
    )
    return {"token_id": token_id, "outcome": "created"}


async def _find_payout(db: AsyncSession, *where) -> Optional[Payout]:
    result = await db.execute(
        select(Payout)
        .where(*where)
        .order_by(Payout.created_at)
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _find_batch(db: AsyncSession, reference: Optional[str]) -> Optional[PayoutBatch]:
    if not reference:
        return None
    result = await db.execute(
        select(PayoutBatch).where(PayoutBatch.reference == reference)
    )
    return result.scalar_one_or_none()


async def handle_payout_completed(
    db: AsyncSession, data: dict, provider: CustodyProvider
) -> dict:
    tx_hash = _require(data, "tx_hash")
    batch = await _find_batch(db, data.get("payout_id"))
    if batch and not batch.external_tx_hash:
        batch.external_tx_hash = tx_hash

    applied, skipped, created = 0, 0, 0
    items = data.get("distributions") or []
    if batch and not items:
        # Batch-level confirmation: settle whatever is still pending.
        result = await db.execute(
            select(Payout.id).where(
                Payout.batch_id == batch.id, Payout.status == PayoutStatus.PENDING
            )
        )
        for payout_id in result.scalars().all():
            if await settle_payout(db, payout_id, tx_hash=tx_hash, actor=WEBHOOK_ACTOR):
                applied += 1

    for item in items:
        token = await registry.find_token_by_external_id(db, _require(item, "token_id"))
        if token is None:
            logger.warning(
                "payout.completed for unknown token %s (tx=%s) skipped",
                item.get("token_id"),
                tx_hash,
            )
            skipped += 1
            continue

        existing = await _find_payout(
            db, Payout.token_id == token.id, Payout.tx_hash == tx_hash
        )
        if existing:
            skipped += 1
            continue

        if batch:
            pending = await _find_payout(
                db,
                Payout.token_id == token.id,
                Payout.batch_id == batch.id,
                Payout.status == PayoutStatus.PENDING,
            )
            if pending:
                if await settle_payout(db, pending.id, tx_hash=tx_hash, actor=WEBHOOK_ACTOR):
                    applied += 1
                continue

            settled = await _find_payout(
                db, Payout.token_id == token.id, Payout.batch_id == batch.id
            )
            if settled:
                logger.info(
                    "Payout for token %s in batch %s already %s; tx=%s ignored",
                    token.token_id,
                    batch.reference,
                    settled.status.value,
                    tx_hash,
                )
                skipped += 1
                continue

        # First sight of this distribution: record it completed and credit.
        amount = int(_require(item, "amount"))
        payout = Payout(
            batch_id=batch.id if batch else None,
            owner_id=token.owner_id,
            token_id=token.id,
            amount=amount,
            period=data.get("period"),
            description=data.get("description"),
            tx_hash=tx_hash,
            status=PayoutStatus.COMPLETED,
            completed_at=utc_now(),
        )
        wallet = await wallet_ops.find_wallet_by_owner(db, token.owner_id)
        if wallet is None or wallet.status == WalletStatus.CLOSED:
            payout.status = PayoutStatus.FAILED
            payout.completed_at = None
            payout.failure_reason = (
                "wallet not found" if wallet is None else "wallet closed"
            )
            db.add(payout)
            skipped += 1
            continue

        payout.wallet_id = wallet.id
        if amount > 0:
            txn = await wallet_ops.credit_wallet(
                db,
                wallet_id=wallet.id,
                amount=amount,
                reference=f"payout:{tx_hash}:{token.token_id}",
                transaction_type=TransactionType.PAYOUT,
                description=f"Payout {data.get('period') or tx_hash}",
                service_source="custody_webhook",
                initiated_by=WEBHOOK_ACTOR,
                metadata={"tx_hash": tx_hash, "token_id": token.token_id},
                commit=False,
            )
            payout.wallet_transaction_id = txn.id
            await registry.add_returns(db, token.id, amount)
        db.add(payout)
        await db.flush()
        created += 1

    if batch:
        await db.flush()
        await refresh_batch_status(db, batch.id)
    return {"applied": applied, "created": created, "skipped": skipped}


async def handle_payout_failed(
    db: AsyncSession, data: dict, provider: CustodyProvider
) -> dict:
    reason = data.get("reason") or "provider reported failure"
    batch = await _find_batch(db, data.get("payout_id"))
    tx_hash = data.get("tx_hash")

    conditions = []
    if batch:
        conditions.append(Payout.batch_id == batch.id)
    if tx_hash:
        conditions.append(Payout.tx_hash == tx_hash)
    if not conditions:
        raise ValidationFailed("payout.failed needs a payout_id or tx_hash")

    result = await db.execute(
        select(Payout.id, Payout.batch_id).where(
            or_(*conditions), Payout.status == PayoutStatus.PENDING
        )
    )
    rows = result.all()
    failed = 0
    for payout_id, _batch_id in rows:
        if await fail_payout(db, payout_id, reason=reason, actor=WEBHOOK_ACTOR):
            failed += 1
    for batch_id in {b for _, b in rows if b is not None}:
        await refresh_batch_status(db, batch_id)
    return {"failed": failed}


async def handle_transfer_completed(
    db: AsyncSession, data: dict, provider: CustodyProvider
) -> dict:
    token_id = _require(data, "token_id")
    token = await registry.find_token_by_external_id(db, token_id)
    if token is None:
        logger.warning("transfer.completed for unknown token %s skipped", token_id)
        return {"token_id": token_id, "outcome": "unknown_token"}

    new_owner = await _resolve_owner(db, data, prefix="to_")
    await registry.transfer_owner(
        db,
        token_pk=token.id,
        new_owner_id=new_owner,
        actor=WEBHOOK_ACTOR,
        tx_hash=data.get("tx_hash"),
        commit=False,
    )
    return {"token_id": token_id, "owner_id": new_owner}


async def handle_wallet_created(
    db: AsyncSession, data: dict, provider: CustodyProvider
) -> dict:
    custody_ref = data.get("custody_ref") or data.get("wallet_id")
    address = data.get("wallet_address")
    wallet = await wallet_ops.find_wallet_by_address(db, address) if address else None
    if wallet is None and data.get("owner_id"):
        wallet = await wallet_ops.find_wallet_by_owner(db, data["owner_id"])

    if wallet is None:
        owner_id = _require(data, "owner_id")
        wallet = await wallet_ops.create_wallet(
            db,
            owner_id=owner_id,
            address=address,
            custody_ref=custody_ref,
            actor=WEBHOOK_ACTOR,
            commit=False,
        )
        return {"wallet_id": str(wallet.id), "outcome": "created"}

    if wallet.status == WalletStatus.PENDING or (
        custody_ref and wallet.custody_ref != custody_ref
    ):
        new_status = (
            WalletStatus.ACTIVE if wallet.status == WalletStatus.PENDING else wallet.status
        )
        await wallet_ops.set_wallet_status(
            db,
            wallet_id=wallet.id,
            status=new_status,
            actor=WEBHOOK_ACTOR,
            custody_ref=custody_ref,
            reason="custody wallet created",
            commit=False,
        )
        return {"wallet_id": str(wallet.id), "outcome": "updated"}
    return {"wallet_id": str(wallet.id), "outcome": "unchanged"}


async def handle_custody_updated(
    db: AsyncSession, data: dict, provider: CustodyProvider
) -> dict:
    asset = await _resolve_asset(db, data)
    await registry.update_custody(
        db,
        asset,
        custody_ref=data.get("custody_ref"),
        custody_status=data.get("status") or data.get("custody_status"),
        actor=WEBHOOK_ACTOR,
    )
    return {"asset_id": str(asset.id), "custody_status": asset.custody_status}


async def handle_unknown(
    db: AsyncSession, data: dict, provider: CustodyProvider
) -> dict:
    return {"ignored": True}


Handler = Callable[[AsyncSession, dict, CustodyProvider], Awaitable[dict]]

HANDLERS: dict[WebhookEventType, Handler] = {
    WebhookEventType.TOKEN_MINTED: handle_token_minted,
    WebhookEventType.PAYOUT_COMPLETED: handle_payout_completed,
    WebhookEventType.PAYOUT_FAILED: handle_payout_failed,
    WebhookEventType.TRANSFER_COMPLETED: handle_transfer_completed,
    WebhookEventType.WALLET_CREATED: handle_wallet_created,
    WebhookEventType.CUSTODY_UPDATED: handle_custody_updated,
    WebhookEventType.UNKNOWN: handle_unknown,
}


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


async def _already_processed(db: AsyncSession, digest: str) -> Optional[WebhookLog]:
    result = await db.execute(
        select(WebhookLog)
        .where(
            WebhookLog.payload_digest == digest,
            WebhookLog.status == WebhookLogStatus.PROCESSED,
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _finish_log(
    db: AsyncSession,
    log_id: uuid.UUID,
    *,
    status: WebhookLogStatus,
    response: Optional[dict] = None,
    error: Optional[str] = None,
) -> None:
    result = await db.execute(
        select(WebhookLog)
        .where(WebhookLog.id == log_id)
        .execution_options(populate_existing=True)
    )
    log = result.scalar_one()
    log.status = status
    log.response = response
    log.error = error
    log.processed_at = utc_now()


async def reconcile_delivery(
    db: AsyncSession,
    provider: CustodyProvider,
    *,
    raw_body: bytes,
    signature: Optional[str],
    source: str = "custody",
) -> WebhookResult:
    if not provider.verify_signature(raw_body, signature):
        logger.warning("Rejected %s webhook: invalid signature", source)
        return WebhookResult(401, {"detail": "Invalid signature"})

    digest = payload_digest(raw_body)
    try:
        payload = json.loads(raw_body.decode("utf-8"))
        if not isinstance(payload, dict) or not isinstance(payload.get("event_type"), str):
            raise ValueError("expected an object with an event_type")
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise ValueError("data must be an object")
    except (UnicodeDecodeError, ValueError) as e:
        log = WebhookLog(
            source=source,
            event_type="malformed",
            raw_body=raw_body.decode("utf-8", errors="replace"),
            payload_digest=digest,
            status=WebhookLogStatus.FAILED,
            error=str(e),
            processed_at=utc_now(),
        )
        db.add(log)
        await db.commit()
        logger.warning("Malformed %s webhook (%s)", source, e)
        return WebhookResult(400, {"detail": "Malformed payload"}, log.id)

    previous = await _already_processed(db, digest)
    if previous:
        logger.info(
            "Replayed %s webhook %s (digest=%s) already processed as %s; acknowledged",
            source,
            payload["event_type"],
            digest[:12],
            previous.id,
        )
        return WebhookResult(200, ACK, previous.id)

    event_type = WebhookEventType(payload["event_type"])
    log = WebhookLog(
        source=source,
        event_type=payload["event_type"],
        payload=payload,
        payload_digest=digest,
        status=WebhookLogStatus.PROCESSING,
    )
    db.add(log)
    await db.commit()
    log_id = log.id

    if event_type == WebhookEventType.UNKNOWN:
        logger.warning(
            "Unknown %s webhook event '%s' acknowledged", source, payload["event_type"]
        )

    try:
        response = await HANDLERS[event_type](db, data, provider)
        await _finish_log(db, log_id, status=WebhookLogStatus.PROCESSED, response=response)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(
            "Processing %s webhook %s failed", source, payload["event_type"]
        )
        await _finish_log(db, log_id, status=WebhookLogStatus.FAILED, error=str(e))
        await db.commit()
        return WebhookResult(500, {"received": False}, log_id)

    logger.info(
        "Processed %s webhook %s: %s", source, payload["event_type"], response
    )
    return WebhookResult(200, ACK, log_id)
