"""
Application configuration using pydantic-settings.
Loads from environment variables / .env file.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "swisstools-checkout"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False

    # API Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Postgres
    database_url: str = ""

    # Redis (Celery broker for reconciliation)
    redis_url: str = "redis://localhost:6379/0"

    # Flutterwave
    flutterwave_secret_key: str = ""
    flutterwave_base_url: str = "https://api.flutterwave.com"
    flutterwave_webhook_hash: str = ""
    gateway_timeout_seconds: float = 15.0

    # Checkout
    default_currency: str = "NGN"
    default_country: str = "Nigeria"
    amount_tolerance: Decimal = Decimal("0.01")
    password_hash_rounds: int = 12

    # Reconciliation of pending transactions
    reconcile_after_minutes: int = 10
    reconcile_max_attempts: int = 5

    # SMTP
    smtp_host: str = ""
    smtp_port: int = 465
    smtp_user: str = "support@swisstools.store"
    smtp_password: str = ""
    smtp_use_ssl: bool = True
    email_from: str = "support@swisstools.store"
    email_from_name: str = "SWISStools"

    # Storefront links used in emails
    store_url: str = "https://swisstools.store"

    # Admin
    admin_api_key: str = ""

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
