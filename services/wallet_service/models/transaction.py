"""WalletTransaction model: append-only ledger."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.wallet_service.models.enums import (
    TransactionDirection,
    TransactionStatus,
    TransactionType,
    enum_values,
)
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import BigInteger, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship


class WalletTransaction(Base):
    """Ledger entry. Source of truth for the wallet balance.

    Completed entries are immutable. A pending entry carries no balance
    effect and moves to completed or failed exactly once.
    """

    __tablename__ = "wallet_transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    wallet_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("wallets.id"), nullable=False, index=True
    )
    reference: Mapped[str] = mapped_column(String, nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(
            TransactionType,
            name="transaction_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    direction: Mapped[TransactionDirection] = mapped_column(
        SAEnum(
            TransactionDirection,
            name="transaction_direction_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Snapshots are set when the entry completes.
    balance_before: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    balance_after: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(
            TransactionStatus,
            name="transaction_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=TransactionStatus.PENDING,
        nullable=False,
    )
    description: Mapped[str] = mapped_column(String, nullable=False)
    service_source: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    initiated_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    txn_metadata: Mapped[Optional[dict]] = mapped_column(
        "txn_metadata", JSONType, nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    wallet: Mapped["Wallet"] = relationship(  # noqa: F821
        back_populates="transactions", lazy="raise"
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        UniqueConstraint(
            "wallet_id",
            "direction",
            "reference",
            name="uq_wallet_transactions_wallet_direction_reference",
        ),
        Index("ix_wallet_transactions_wallet_created", "wallet_id", "created_at"),
    )

    @property
    def signed_amount(self) -> int:
        return self.amount if self.direction == TransactionDirection.CREDIT else -self.amount

    def __repr__(self) -> str:
        return f"<WalletTransaction {self.id} {self.direction.value} {self.amount} {self.status.value}>"
