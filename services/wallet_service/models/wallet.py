"""Wallet model: one balance holder per user."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.wallet_service.models.enums import WalletStatus, enum_values
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import BigInteger, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Wallet(Base):
    """Cached balance over the wallet's completed transactions.

    ``balance`` is only ever changed by ``wallet_ops`` through a single
    conditional UPDATE, never by assigning the attribute.
    """

    __tablename__ = "wallets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    owner_id: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    address: Mapped[str] = mapped_column(
        String(42), unique=True, index=True, nullable=False
    )
    custody_ref: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    balance: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default="NGN", nullable=False)
    lifetime_credited: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    lifetime_debited: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    status: Mapped[WalletStatus] = mapped_column(
        SAEnum(
            WalletStatus,
            name="wallet_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=WalletStatus.ACTIVE,
        nullable=False,
    )
    frozen_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    frozen_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    transactions: Mapped[list["WalletTransaction"]] = relationship(  # noqa: F821
        back_populates="wallet", lazy="raise"
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Wallet {self.id} owner_id={self.owner_id} balance={self.balance}>"
