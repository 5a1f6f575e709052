"""Enums for the Ownership Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class AssetType(str, enum.Enum):
    VEHICLE = "vehicle"
    BATTERY = "battery"
    CABINET = "cabinet"


class TokenStatus(str, enum.Enum):
    PENDING = "pending"  # minted locally, awaiting custody confirmation
    ACTIVE = "active"
    TRANSFERRED = "transferred"
    REVOKED = "revoked"


# Statuses whose fraction counts against the 100% of an asset.
ALLOCATING_STATUSES = (TokenStatus.PENDING, TokenStatus.ACTIVE)
