"""OwnershipToken model: one owner's stake in one asset."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.ownership_service.models.enums import TokenStatus, enum_values
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import BigInteger, ForeignKey, Index, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship


class OwnershipToken(Base):
    """Never deleted; only status-transitioned."""

    __tablename__ = "ownership_tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Identifier shared with the custody provider.
    token_id: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assets.id"), nullable=False, index=True
    )
    owner_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    # Percent of the asset, 0 < f <= 100.
    fraction_owned: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    investment_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_returns: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[TokenStatus] = mapped_column(
        SAEnum(
            TokenStatus,
            name="token_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=TokenStatus.PENDING,
        nullable=False,
    )
    tx_hash: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    chain: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    metadata_hash: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    minted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    previous_owner_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    transferred_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    asset: Mapped["Asset"] = relationship(  # noqa: F821
        back_populates="tokens", lazy="raise"
    )

    __table_args__ = (
        CheckConstraint(
            "fraction_owned > 0 AND fraction_owned <= 100",
            name="ck_token_fraction_range",
        ),
        CheckConstraint("investment_amount >= 0", name="ck_token_investment_non_negative"),
        Index("ix_ownership_tokens_asset_status", "asset_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<OwnershipToken {self.token_id} asset={self.asset_id} {self.fraction_owned}%>"
