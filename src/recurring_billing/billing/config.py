"""
Billing module configuration
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CurrencyConfig(BaseModel):
    """Currency configuration - single currency per order"""

    model_config = ConfigDict()

    default_currency: str = Field("USD", description="Default currency code")
    locale: str = Field("en_US", description="Locale used for money formatting")


class DunningConfig(BaseModel):
    """Defaults applied to billing schedules that do not set their own policy"""

    model_config = ConfigDict()

    retry_schedule_days: list[int] = Field(
        default_factory=lambda: [1, 3, 5],
        description="Days to wait before each payment retry",
    )
    unpaid_subscription_state: str = Field(
        "active", description="Subscription state applied when dunning is exhausted"
    )
    send_notifications: bool = Field(True, description="Emit payment declined events")

    @field_validator("retry_schedule_days")
    @classmethod
    def validate_retry_schedule(cls, v: list[int]) -> list[int]:
        if any(days < 0 for days in v):
            raise ValueError("Retry delays must not be negative")
        return v


def _default_currency_config() -> CurrencyConfig:
    """Create default CurrencyConfig instance"""
    return CurrencyConfig(default_currency="USD", locale="en_US")


def _default_dunning_config() -> DunningConfig:
    """Create default DunningConfig instance"""
    return DunningConfig(
        retry_schedule_days=[1, 3, 5],
        unpaid_subscription_state="active",
        send_notifications=True,
    )


class BillingConfig(BaseModel):
    """Main billing configuration"""

    model_config = ConfigDict()

    currency: CurrencyConfig = Field(default_factory=_default_currency_config)
    dunning: DunningConfig = Field(default_factory=_default_dunning_config)

    proration_enabled: bool = Field(True, description="Enable mid-cycle proration")

    @classmethod
    def from_settings(cls) -> "BillingConfig":
        """Create configuration from the centralized settings"""
        from recurring_billing.settings import settings

        return cls(
            currency=CurrencyConfig(
                default_currency=settings.billing.default_currency,
                locale=settings.billing.default_locale,
            ),
            dunning=DunningConfig(
                retry_schedule_days=list(settings.billing.retry_schedule_days),
                unpaid_subscription_state=settings.billing.unpaid_subscription_state,
                send_notifications=settings.billing.send_payment_declined_notifications,
            ),
            proration_enabled=settings.billing.proration_enabled,
        )


# Global configuration instance
_billing_config: BillingConfig | None = None


def get_billing_config() -> BillingConfig:
    """Get the global billing configuration instance"""
    global _billing_config
    if _billing_config is None:
        _billing_config = BillingConfig.from_settings()
    return _billing_config


def set_billing_config(config: BillingConfig | None) -> None:
    """Set the global billing configuration instance"""
    global _billing_config
    _billing_config = config
