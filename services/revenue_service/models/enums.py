"""Enums for the Revenue Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class RevenueSourceType(str, enum.Enum):
    RIDE = "ride"
    RENTAL = "rental"
    SWAP = "swap"
    OTHER = "other"
    COMPENSATION = "compensation"
