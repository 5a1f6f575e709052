from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "test", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    DEFAULT_CURRENCY: str = "NGN"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Auth
    # Placeholder keeps local/test runs from failing; real deployments override via env.
    JWT_SECRET: str = "test-jwt-secret"

    # Revenue split (fractions of gross, must sum to exactly 1)
    REVENUE_SPLIT_VERSION: str = "2025-11"
    REVENUE_INVESTOR_PCT: Decimal = Decimal("0.50")
    REVENUE_RIDER_PCT: Decimal = Decimal("0.30")
    REVENUE_MANAGEMENT_PCT: Decimal = Decimal("0.15")
    REVENUE_MAINTENANCE_PCT: Decimal = Decimal("0.05")
    # Minor units charged per kilometre when pricing a completed ride
    REVENUE_BASE_RATE_PER_KM: int = 125

    # Custody provider
    CUSTODY_PROVIDER: Literal["sandbox", "live"] = "sandbox"
    CUSTODY_API_BASE: str = ""
    CUSTODY_API_KEY: str = ""
    CUSTODY_CHAIN: str = "bantu-testnet"
    CUSTODY_TIMEOUT_SECONDS: float = 10.0
    CUSTODY_WEBHOOK_SECRET: str = ""
    CUSTODY_WEBHOOK_SIGNATURE_HEADER: str = "X-Custody-Signature"
    # Only honoured by the sandbox provider; every bypassed delivery is logged.
    CUSTODY_WEBHOOK_BYPASS_SIGNATURE: bool = False

    # Collaborators
    NOTIFICATIONS_SERVICE_URL: str = "http://notifications-service:8004"
    NOTIFICATIONS_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
