"""Application configuration."""

from decimal import Decimal
from os import getenv

from pydantic import BaseModel


class Settings(BaseModel):
    """Runtime settings for the application."""

    app_name: str = "foodflow API"
    app_env: str = getenv("APP_ENV", "dev")
    debug: bool = getenv("DEBUG", "0") == "1"
    log_level: str = getenv("LOG_LEVEL", "INFO")
    database_url: str = getenv("DATABASE_URL", "sqlite:///./foodflow.db")
    redis_url: str = getenv("REDIS_URL", "")
    jwt_secret_key: str = getenv("JWT_SECRET_KEY", "dev-only-change-me-to-a-long-random-secret")
    jwt_algorithm: str = getenv("JWT_ALGORITHM", "HS256")
    jwt_expire_minutes: int = int(getenv("JWT_EXPIRE_MINUTES", "60"))
    order_tax_rate: Decimal = Decimal(getenv("ORDER_TAX_RATE", "0.10"))
    order_delivery_fee: Decimal = Decimal(getenv("ORDER_DELIVERY_FEE", "5.00"))
    sync_dedup_ttl_seconds: int = int(getenv("SYNC_DEDUP_TTL_SECONDS", "86400"))
    sync_claim_ttl_seconds: int = int(getenv("SYNC_CLAIM_TTL_SECONDS", "300"))
    queue_lease_seconds: int = int(getenv("QUEUE_LEASE_SECONDS", "300"))
    seed_demo_data: bool = getenv("SEED_DEMO_DATA", "0") == "1"


settings: Settings = Settings()
