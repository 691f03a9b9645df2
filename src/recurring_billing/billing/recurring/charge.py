"""Charge value object returned by subscription types."""

from decimal import Decimal
from typing import Any

from moneyed import Money
from pydantic import BaseModel, ConfigDict, Field, field_validator

from recurring_billing.billing.recurring.billing_period import BillingPeriod
from recurring_billing.billing.recurring.models import PurchasedItem


class Charge(BaseModel):
    """
    One billable line item for a subscription's billing period.

    Construction fails with a ``ValidationError`` when ``title``,
    ``unit_price`` or ``billing_period`` is missing, or when
    ``purchased_item``, ``unit_price`` or ``billing_period`` has the wrong type.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    purchased_item: PurchasedItem | None = None
    title: str = Field(min_length=1)
    quantity: Decimal = Field(Decimal("1"), gt=0)
    unit_price: Money
    billing_period: BillingPeriod

    @field_validator("purchased_item", mode="before")
    @classmethod
    def validate_purchased_item(cls, v: Any) -> Any:
        if v is not None and not isinstance(v, PurchasedItem):
            raise ValueError("The purchased_item property must be a PurchasedItem instance")
        return v

    @field_validator("unit_price", mode="before")
    @classmethod
    def validate_unit_price(cls, v: Any) -> Any:
        if not isinstance(v, Money):
            raise ValueError("The unit_price property must be a Money instance")
        return v

    @field_validator("billing_period", mode="before")
    @classmethod
    def validate_billing_period(cls, v: Any) -> Any:
        if not isinstance(v, BillingPeriod):
            raise ValueError("The billing_period property must be a BillingPeriod instance")
        return v

    @property
    def total_price(self) -> Money:
        return self.unit_price * self.quantity
