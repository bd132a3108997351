"""Application configuration via pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TierSetting(BaseModel):
    """One row of the configurable tier table."""

    name: str
    threshold: int
    multiplier: float
    benefits: List[str] = []


DEFAULT_TIERS: List[TierSetting] = [
    TierSetting(name="BRONZE", threshold=0, multiplier=1.0, benefits=["Member rates"]),
    TierSetting(
        name="SILVER",
        threshold=1000,
        multiplier=1.2,
        benefits=["Member rates", "Late checkout on request"],
    ),
    TierSetting(
        name="GOLD",
        threshold=10000,
        multiplier=1.5,
        benefits=["Member rates", "Late checkout", "Room upgrade on availability"],
    ),
    TierSetting(
        name="PLATINUM",
        threshold=25000,
        multiplier=2.0,
        benefits=["Member rates", "Late checkout", "Guaranteed upgrade", "Lounge access"],
    ),
    TierSetting(
        name="DIAMOND",
        threshold=50000,
        multiplier=2.5,
        benefits=[
            "Member rates",
            "Late checkout",
            "Suite upgrade",
            "Lounge access",
            "Dedicated concierge",
        ],
    ),
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "StayLedger"
    app_version: str = "1.0.0"
    environment: Literal["development", "test", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    api_prefix: str = "/api/v1"
    run_startup_reconciliation: bool = True

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4

    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "stayledger"
    postgres_password: str = Field(default="stayledger_secret")
    postgres_db: str = "stayledger"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    database_url_override: Optional[str] = Field(default=None, alias="DATABASE_URL")

    @computed_field
    @property
    def database_url(self) -> str:
        """Async database connection URL."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @computed_field
    @property
    def redis_url(self) -> str:
        """Redis connection URL."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # JWT Authentication
    jwt_secret_key: str = Field(default="your-super-secret-key-change-in-production")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15

    # Rate limiting (applied outside development and test)
    rate_limit_per_minute: int = 120

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:8080"]

    # External collaborators
    pricing_service_url: str = "http://localhost:8101"
    inventory_service_url: str = "http://localhost:8102"
    notification_webhook_url: Optional[str] = None
    collaborator_timeout_seconds: float = 5.0

    # Lifecycle rules
    free_cancellation_hours: int = 24
    late_cancellation_hours: int = 12
    late_cancellation_penalty_percent: int = 50
    hotel_check_in_hour: int = 15  # UTC
    scope_timeout_seconds: float = 5.0
    default_currency: str = "USD"

    # Loyalty rules
    points_per_currency_unit: int = 100  # 100 points = 1 currency unit of discount
    min_redemption_points: int = 100
    max_redemption_points_per_booking: int = 5000
    completion_points_per_night: int = 10
    completion_spend_rate: float = 0.10
    completion_bonus_cap: int = 200
    points_expiry_months: int = 24
    max_admin_adjustment: int = 50000
    loyalty_tiers: List[TierSetting] = Field(default_factory=lambda: list(DEFAULT_TIERS))

    # Scheduled jobs
    points_expiry_hour: int = 2  # UTC
    reconciliation_hour: int = 4  # UTC


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
