from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production", "test"] = "local"
    LOG_LEVEL: str = "INFO"
    SERVICE_NAME: str = "giftcard_service"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Supabase auth
    # Placeholder defaults keep local/test runs from failing when real
    # credentials are not needed. Deployments override via env.
    SUPABASE_JWT_SECRET: str = "test-jwt-secret"

    # Microservices URLs
    COMMUNICATIONS_SERVICE_URL: str = "http://communications-service:8004"

    # Gift cards
    GIFT_CARD_MONTHLY_LIMIT: Decimal = Decimal("125.00")
    GIFT_CARD_DEFAULT_CURRENCY: str = "USD"
    # Calendar-month boundaries for issuance limits are computed in this zone.
    GIFT_CARD_LIMIT_TIMEZONE: str = "UTC"
    GIFT_CARD_DEFAULT_EXPIRY_DAYS: int = 365
    GIFT_CARD_MAX_EXPIRY_DAYS: int = 365
    GIFT_CARD_CODE_ATTEMPTS: int = 10
    GIFT_CARD_LOCK_TIMEOUT_SECONDS: float = 0.75
    GIFT_CARD_NOTIFICATIONS_ENABLED: bool = True

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

    @field_validator("GIFT_CARD_LOCK_TIMEOUT_SECONDS")
    @classmethod
    def lock_timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("GIFT_CARD_LOCK_TIMEOUT_SECONDS must be positive")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
