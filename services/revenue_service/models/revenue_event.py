"""RevenueEvent model: one immutable gross-revenue occurrence."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.revenue_service.models.enums import RevenueSourceType, enum_values
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import BigInteger, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column


class RevenueEvent(Base):
    """Never updated. Corrections are new events with negated amounts."""

    __tablename__ = "revenue_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assets.id"), nullable=False, index=True
    )
    source_type: Mapped[RevenueSourceType] = mapped_column(
        SAEnum(
            RevenueSourceType,
            name="revenue_source_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    source_reference: Mapped[str] = mapped_column(String, nullable=False)
    # Minor units. Negative only on compensation events.
    gross_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    investor_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    rider_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    management_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    maintenance_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    config_version: Mapped[str] = mapped_column(String, nullable=False)
    compensates_event_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("revenue_events.id"),
        unique=True,
        nullable=True,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "investor_amount + rider_amount + management_amount + maintenance_amount"
            " = gross_amount",
            name="ck_revenue_split_sums_to_gross",
        ),
        UniqueConstraint(
            "source_type",
            "source_reference",
            name="uq_revenue_events_source",
        ),
        Index("ix_revenue_events_asset_occurred", "asset_id", "occurred_at"),
    )

    def __repr__(self) -> str:
        return f"<RevenueEvent {self.id} asset={self.asset_id} gross={self.gross_amount}>"
