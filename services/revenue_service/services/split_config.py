"""Versioned revenue split configuration.

A ``RevenueSplitConfig`` is an immutable value passed into every split. It
is validated once, when it is built, so a bad split never reaches the
ledger.
"""

from decimal import Decimal
from functools import lru_cache

from libs.common.config import Settings, get_settings
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator


class RevenueSplitConfigError(ValueError):
    """The configured split is unusable."""


class RevenueSplitConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str
    investor: Decimal
    rider: Decimal
    management: Decimal
    maintenance: Decimal

    @model_validator(mode="after")
    def check_percentages(self) -> "RevenueSplitConfig":
        for name in ("investor", "rider", "management", "maintenance"):
            value = getattr(self, name)
            if not value.is_finite() or value < 0 or value > 1:
                raise ValueError(f"{name} share must be between 0 and 1, got {value}")
        total = self.investor + self.rider + self.management + self.maintenance
        if total != Decimal("1"):
            raise ValueError(f"split shares must sum to exactly 1, got {total}")
        return self

    @classmethod
    def build(cls, **values) -> "RevenueSplitConfig":
        """Construct and validate, raising RevenueSplitConfigError on failure."""
        try:
            return cls(**values)
        except ValidationError as e:
            raise RevenueSplitConfigError(str(e)) from e


def split_config_from_settings(settings: Settings) -> RevenueSplitConfig:
    return RevenueSplitConfig.build(
        version=settings.REVENUE_SPLIT_VERSION,
        investor=settings.REVENUE_INVESTOR_PCT,
        rider=settings.REVENUE_RIDER_PCT,
        management=settings.REVENUE_MANAGEMENT_PCT,
        maintenance=settings.REVENUE_MAINTENANCE_PCT,
    )


@lru_cache
def get_split_config() -> RevenueSplitConfig:
    """The deployment's split, loaded once. Usable as a FastAPI dependency."""
    return split_config_from_settings(get_settings())
