"""Admin-specific schemas."""

from pydantic import BaseModel, Field


class FreezeWalletRequest(BaseModel):
    reason: str = Field(..., min_length=5, description="Reason for freezing the wallet")


class UnfreezeWalletRequest(BaseModel):
    reason: str = Field(
        default="Admin unfroze wallet",
        description="Reason for unfreezing",
    )
