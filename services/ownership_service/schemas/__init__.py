"""Ownership Service schemas package."""

from services.ownership_service.schemas.asset import (  # noqa: F401
    AssetCreateRequest,
    AssetResponse,
    RemainingOwnershipResponse,
)
from services.ownership_service.schemas.token import (  # noqa: F401
    ConfirmTokenRequest,
    MintTokenRequest,
    PortfolioBucketResponse,
    PortfolioResponse,
    RevokeTokenRequest,
    TokenResponse,
    TransferTokenRequest,
)

__all__ = [
    # Asset
    "AssetCreateRequest",
    "AssetResponse",
    "RemainingOwnershipResponse",
    # Token
    "ConfirmTokenRequest",
    "MintTokenRequest",
    "PortfolioBucketResponse",
    "PortfolioResponse",
    "RevokeTokenRequest",
    "TokenResponse",
    "TransferTokenRequest",
]
