import uuid
from datetime import datetime

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.payouts_service.models.enums import (
    PayoutBatchStatus,
    PayoutStatus,
    WebhookLogStatus,
    enum_values,
)
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import BigInteger, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column


class PayoutBatch(Base):
    """One distribution of an amount across an asset's owners."""

    __tablename__ = "payout_batches"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Sent to the custody provider as the payout id.
    reference: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assets.id"), nullable=False, index=True
    )
    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Σ shares; below total by the unsold fraction and rounding.
    distributed_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    period: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    distributed_by: Mapped[str] = mapped_column(String, nullable=False)
    external_tx_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[PayoutBatchStatus] = mapped_column(
        SAEnum(
            PayoutBatchStatus,
            name="payout_batch_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PayoutBatchStatus.PROCESSING,
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("total_amount > 0", name="ck_payout_batch_total_positive"),
    )

    def __repr__(self):
        return f"<PayoutBatch {self.reference} {self.status.value}>"


class Payout(Base):
    """One owner's share of a batch."""

    __tablename__ = "payouts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    batch_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("payout_batches.id"), nullable=True, index=True
    )
    owner_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    # Nullable for payouts recorded without a token (legacy flows).
    token_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("ownership_tokens.id"), nullable=True, index=True
    )
    wallet_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("wallets.id"), nullable=True
    )
    wallet_transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("wallet_transactions.id"), nullable=True
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    period: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tx_hash: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    status: Mapped[PayoutStatus] = mapped_column(
        SAEnum(
            PayoutStatus,
            name="payout_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PayoutStatus.PENDING,
        nullable=False,
    )
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payout_amount_non_negative"),
        UniqueConstraint("token_id", "tx_hash", name="uq_payouts_token_tx_hash"),
    )

    def __repr__(self):
        return f"<Payout {self.id} owner={self.owner_id} {self.amount} {self.status.value}>"


class WebhookLog(Base):
    """One inbound provider delivery. Written before handlers run."""

    __tablename__ = "webhook_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    source: Mapped[str] = mapped_column(String, nullable=False)
    event_type: Mapped[str] = mapped_column(String, index=True, nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    raw_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload_digest: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    status: Mapped[WebhookLogStatus] = mapped_column(
        SAEnum(
            WebhookLogStatus,
            name="webhook_log_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=WebhookLogStatus.PROCESSING,
        nullable=False,
    )
    response: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self):
        return f"<WebhookLog {self.event_type} {self.status.value}>"
