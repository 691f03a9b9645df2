"""Centralized configuration using pydantic-settings.

All configuration is loaded from environment variables and .env files.
This is the single source of truth for recurring billing configuration.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    For nested settings, use double underscore: BILLING__DEFAULT_CURRENCY=EUR
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    # ============================================================
    # Core Application Settings
    # ============================================================

    app_name: str = Field("recurring-billing", description="Application name")
    app_version: str = Field("1.0.0", description="Application version")
    environment: Environment = Field(Environment.DEVELOPMENT, description="Deployment environment")
    debug: bool = Field(False, description="Debug mode")
    testing: bool = Field(False, description="Testing mode")

    # ============================================================
    # Celery Configuration
    # ============================================================

    class CelerySettings(BaseModel):
        """Celery configuration."""

        broker_url: str = Field("memory://", description="Celery broker URL")
        result_backend: str = Field("cache+memory://", description="Celery result backend URL")
        task_always_eager: bool = Field(False, description="Run tasks synchronously")
        recurring_queue: str = Field("recurring", description="Queue for recurring order jobs")
        close_orders_interval_seconds: int = Field(
            3600, description="How often elapsed recurring orders are closed"
        )
        ensure_orders_interval_seconds: int = Field(
            86400, description="How often draft orders are ensured for active subscriptions"
        )

    celery: CelerySettings = CelerySettings()  # type: ignore[call-arg]

    # ============================================================
    # Observability
    # ============================================================

    class ObservabilitySettings(BaseModel):
        """Observability configuration."""

        log_level: LogLevel = Field(LogLevel.INFO, description="Log level")
        log_format: str = Field("json", description="Log format (json or text)")
        enable_structured_logging: bool = Field(True, description="Enable structured logging")
        enable_correlation_ids: bool = Field(True, description="Enable correlation IDs")

    observability: ObservabilitySettings = ObservabilitySettings()  # type: ignore[call-arg]

    # ============================================================
    # Billing Configuration
    # ============================================================

    class BillingSettings(BaseModel):
        """Recurring billing configuration."""

        default_currency: str = Field("USD", description="Default currency for subscriptions")
        default_locale: str = Field("en_US", description="Locale used for money formatting")
        proration_enabled: bool = Field(True, description="Enable mid-cycle proration")

        # Dunning
        retry_schedule_days: list[int] = Field(
            default_factory=lambda: [1, 3, 5],
            description="Days to wait before each payment retry",
        )
        unpaid_subscription_state: str = Field(
            "active", description="Subscription state applied when dunning is exhausted"
        )
        send_payment_declined_notifications: bool = Field(
            True, description="Emit payment declined events for dunning emails"
        )

    billing: BillingSettings = BillingSettings()  # type: ignore[call-arg]

    # ============================================================
    # Validation & Helpers
    # ============================================================

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: Any) -> Any:
        """Validate environment."""
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.testing or self.environment == Environment.TEST


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get global settings instance (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore
    return _settings


def reset_settings() -> None:
    """Reset settings (mainly for testing)."""
    global _settings
    _settings = None


# Convenience export
settings = get_settings()
