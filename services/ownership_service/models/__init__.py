"""Ownership Service models package.

Re-exports all models and enums so that:
  - ``from services.ownership_service.models import Asset`` works
  - Alembic env.py sees every table on import
"""

from services.ownership_service.models.asset import Asset  # noqa: F401
from services.ownership_service.models.enums import (  # noqa: F401
    ALLOCATING_STATUSES,
    AssetType,
    TokenStatus,
)
from services.ownership_service.models.token import OwnershipToken  # noqa: F401

__all__ = [
    # Enums
    "ALLOCATING_STATUSES",
    "AssetType",
    "TokenStatus",
    # Models
    "Asset",
    "OwnershipToken",
]
