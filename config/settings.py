"""
Configuration settings for the application
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Normalized Plan IDs
PLAN_FREE = "free"
PLAN_UNLIMITED = "unlimited"
SUBSCRIPTION_PLANS = (PLAN_FREE, PLAN_UNLIMITED)

# Free plan users may own at most this many forms
FREE_PLAN_MAX_FORMS = 3


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,  # Allow both field name and alias
        extra="ignore",
    )

    # Core authentication and security
    jwt_secret_key: Optional[str] = Field(default=None, alias="JWT_SECRET_KEY")
    password_hash_time_cost: int = Field(default=3, alias="PASSWORD_HASH_TIME_COST")

    # Paystack configuration
    paystack_secret_key: Optional[str] = Field(default=None, alias="PAYSTACK_SECRET_KEY")
    paystack_public_key: Optional[str] = Field(default=None, alias="PAYSTACK_PUBLIC_KEY")
    paystack_base_url: str = Field(default="https://api.paystack.co", alias="PAYSTACK_BASE_URL")
    paystack_callback_url: str = Field(
        default="http://localhost:3000/payment/callback",
        alias="PAYSTACK_CALLBACK_URL"
    )
    paystack_verify_webhook_signature: bool = Field(
        default=True,
        alias="PAYSTACK_VERIFY_WEBHOOK_SIGNATURE"
    )
    payment_timeout_seconds: float = Field(default=15.0, alias="PAYMENT_TIMEOUT_SECONDS")

    # Pricing configuration (minor units, e.g. kobo: 500000 = NGN 5000)
    subscription_amount: int = Field(default=500000, alias="SUBSCRIPTION_AMOUNT")

    # Infrastructure configuration
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    database_url: Optional[str] = Field(default="sqlite+aiosqlite:///./formcraft.db", alias="DATABASE_URL")
    auth_rate_limit_per_minute: int = Field(default=30, alias="AUTH_RATE_LIMIT_PER_MINUTE")

    # Frontend configuration
    frontend_url: Optional[str] = Field(default="http://localhost:3000", alias="FRONTEND_URL")

    # Logging
    log_dir: str = Field(default="./logs", alias="LOG_DIR")

    # Environment configuration
    env: Optional[str] = Field(default=None, alias="ENV")


# Instantiate settings object
settings = Settings()

# Determine if we're in production mode
IS_PRODUCTION = bool(settings.env and settings.env.lower() == "production")
