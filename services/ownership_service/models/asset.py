"""Asset model: a physical unit that can be fractionally owned."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.ownership_service.models.enums import AssetType, enum_values
from sqlalchemy import Boolean, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Asset(Base):
    __tablename__ = "assets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    asset_type: Mapped[AssetType] = mapped_column(
        SAEnum(
            AssetType,
            name="asset_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    external_ref: Mapped[Optional[str]] = mapped_column(
        String, unique=True, index=True, nullable=True
    )
    # Money in minor units.
    original_value: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_tokenized: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Principal allowed to distribute payouts for this asset.
    operator_id: Mapped[Optional[str]] = mapped_column(String, index=True, nullable=True)
    custody_ref: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    custody_status: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    custody_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Bumped by every mint; the UPDATE serializes concurrent minters.
    ownership_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    tokens: Mapped[list["OwnershipToken"]] = relationship(  # noqa: F821
        back_populates="asset", lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<Asset {self.id} {self.asset_type.value} {self.name!r}>"
