"""
Configuration settings for the JapanHaul storefront backend.
Loads from environment variables with validation.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "JapanHaul Storefront"
    DEBUG: bool = False
    FRONTEND_URL: str = "http://localhost:3000"
    SECRET_KEY: str

    # Database
    DATABASE_URL: str

    # Stripe (manual capture: authorize at checkout, capture once shipping is known)
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_API_BASE: str = "https://api.stripe.com/v1"
    STRIPE_API_VERSION: str = "2025-09-30.clover"
    STRIPE_TIMEOUT_SECONDS: float = 20.0

    # Simulated payments when no Stripe key is configured.
    # None means "allowed only in DEBUG".
    PAYMENTS_DEMO_MODE: bool | None = None

    # Pricing & settlement
    CURRENCY: str = "jpy"
    AUTHORIZATION_POLICY: Literal["original_subtotal", "marked_up_subtotal"] = "original_subtotal"

    # Reporting
    REPORT_ORDER_LIMIT: int = 1000

    # Back-office bootstrap
    ADMIN_SETUP_SECRET: str | None = None
    DEFAULT_ADMIN_UID: str = "default-super-admin-uid"
    DEFAULT_ADMIN_EMAIL: str = "admin@japanhaul.com"

    @property
    def demo_payments_allowed(self) -> bool:
        if self.PAYMENTS_DEMO_MODE is None:
            return self.DEBUG
        return self.PAYMENTS_DEMO_MODE

    def validate_production_settings(self):
        """Validate critical settings for production deployment."""
        if not self.STRIPE_SECRET_KEY and self.demo_payments_allowed:
            raise ValueError(
                "PAYMENTS_DEMO_MODE cannot be enabled in production. "
                "Set STRIPE_SECRET_KEY or run with DEBUG=true."
            )
        if not self.ADMIN_SETUP_SECRET:
            raise ValueError("ADMIN_SETUP_SECRET is required in production.")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings loader with production validation."""
    settings = Settings()
    # Validate critical settings when not in debug mode
    if not settings.DEBUG:
        settings.validate_production_settings()
    return settings
