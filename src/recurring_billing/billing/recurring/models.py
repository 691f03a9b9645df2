"""
Recurring billing entities.

Subscriptions, recurring orders and their items as typed pydantic models.
Entities validate on assignment; ``extra`` maps carry subscription-type or
schedule-specific data and are opaque to the billing engine.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from moneyed import Money
from pydantic import BaseModel, ConfigDict, Field

from recurring_billing.billing.money_utils import money_handler
from recurring_billing.billing.recurring.billing_period import BillingPeriod


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:16]}"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SubscriptionState(str, Enum):
    """Subscription lifecycle states."""

    PENDING = "pending"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    EXPIRED = "expired"


class OrderState(str, Enum):
    """Recurring order states. Everything but DRAFT is terminal."""

    DRAFT = "draft"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"


# States whose subscriptions keep generating charges on refresh
CHARGEABLE_STATES = frozenset({SubscriptionState.ACTIVE, SubscriptionState.PAST_DUE})

# States reached when a subscription stopped, possibly mid-period
ENDED_STATES = frozenset({SubscriptionState.CANCELED, SubscriptionState.EXPIRED})


class PurchasedItem(BaseModel):
    """Reference to the purchasable entity a subscription bills for."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    item_type: str = "product_variation"
    title: str = ""


class PaymentMethod(BaseModel):
    """Stored payment method belonging to a customer."""

    model_config = ConfigDict(frozen=True)

    payment_method_id: str
    payment_gateway_id: str | None = None
    method_type: str = "credit_card"
    billing_profile: dict[str, Any] | None = None
    reusable: bool = True

    @property
    def is_resolvable(self) -> bool:
        return self.payment_gateway_id is not None


class Subscription(BaseModel):
    """Customer subscription to a purchasable item on a billing schedule."""

    model_config = ConfigDict(validate_assignment=True, arbitrary_types_allowed=True)

    subscription_id: str = Field(default_factory=lambda: _new_id("sub"))
    type: str = Field("product_variation", description="Subscription type tag")
    store_id: str
    billing_schedule_id: str
    customer_id: str
    payment_method: PaymentMethod | None = None
    purchased_item: PurchasedItem | None = None
    title: str
    quantity: Decimal = Field(Decimal("1"), gt=0)
    unit_price: Money
    state: SubscriptionState = SubscriptionState.PENDING
    created_time: datetime = Field(default_factory=_utcnow)
    start_time: datetime
    end_time: datetime | None = None
    renewed_time: datetime | None = None
    order_ids: list[str] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)

    @property
    def currency_code(self) -> str:
        return self.unit_price.currency.code

    @property
    def payment_method_id(self) -> str | None:
        return self.payment_method.payment_method_id if self.payment_method else None

    def has_order(self, order_id: str) -> bool:
        return order_id in self.order_ids

    def add_order(self, order_id: str) -> bool:
        """Link an order; returns False if it was already linked."""
        if order_id in self.order_ids:
            return False
        self.order_ids = [*self.order_ids, order_id]
        return True


class OrderItem(BaseModel):
    """Line item of a recurring order, one per charge."""

    model_config = ConfigDict(validate_assignment=True, arbitrary_types_allowed=True)

    order_item_id: str = Field(default_factory=lambda: _new_id("oi"))
    type: str = "recurring_product_variation"
    subscription_id: str
    purchased_item: PurchasedItem | None = None
    title: str
    quantity: Decimal
    unit_price: Money
    billing_period: BillingPeriod

    @property
    def total_price(self) -> Money:
        return money_handler.round_money(self.unit_price * self.quantity)


class OrderKey(BaseModel):
    """Attributes that decide whether subscriptions can share one order."""

    model_config = ConfigDict(frozen=True)

    store_id: str
    billing_schedule_id: str
    customer_id: str
    payment_method_id: str | None
    currency_code: str

    @classmethod
    def for_subscription(cls, subscription: Subscription) -> "OrderKey":
        return cls(
            store_id=subscription.store_id,
            billing_schedule_id=subscription.billing_schedule_id,
            customer_id=subscription.customer_id,
            payment_method_id=subscription.payment_method_id,
            currency_code=subscription.currency_code,
        )


class RecurringOrder(BaseModel):
    """Draft order accumulating the charges of one billing period."""

    model_config = ConfigDict(validate_assignment=True)

    order_id: str = Field(default_factory=lambda: _new_id("ord"))
    type: str = "recurring"
    store_id: str
    customer_id: str
    billing_schedule_id: str
    payment_method: PaymentMethod | None = None
    payment_gateway_id: str | None = None
    billing_profile: dict[str, Any] | None = None
    billing_period: BillingPeriod
    currency_code: str
    state: OrderState = OrderState.DRAFT
    items: list[OrderItem] = Field(default_factory=list)
    subscription_ids: list[str] = Field(default_factory=list)
    created_time: datetime = Field(default_factory=_utcnow)
    placed_time: datetime | None = None
    close_queued_time: datetime | None = Field(None, description="When a close job was queued")
    extra: dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> OrderKey:
        """Grouping key; follows the payment method copied on the last refresh."""
        return OrderKey(
            store_id=self.store_id,
            billing_schedule_id=self.billing_schedule_id,
            customer_id=self.customer_id,
            payment_method_id=self.payment_method_id,
            currency_code=self.currency_code,
        )

    @property
    def total_price(self) -> Money:
        return money_handler.add_money(
            money_handler.zero(self.currency_code),
            *(item.total_price for item in self.items),
        )

    @property
    def payment_method_id(self) -> str | None:
        return self.payment_method.payment_method_id if self.payment_method else None

    def has_items(self) -> bool:
        return bool(self.items)

    def items_for(self, subscription_id: str) -> list[OrderItem]:
        return [item for item in self.items if item.subscription_id == subscription_id]

    def link_subscription(self, subscription_id: str) -> bool:
        if subscription_id in self.subscription_ids:
            return False
        self.subscription_ids = [*self.subscription_ids, subscription_id]
        return True

    def clear_payment_details(self) -> None:
        self.payment_method = None
        self.payment_gateway_id = None
        self.billing_profile = None


class Payment(BaseModel):
    """Completed payment captured for a recurring order."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    payment_id: str = Field(default_factory=lambda: _new_id("pay"))
    order_id: str
    payment_gateway_id: str
    payment_method_id: str
    amount: Money
    state: str = "completed"
    remote_id: str | None = None
    completed_time: datetime = Field(default_factory=_utcnow)


__all__ = [
    "CHARGEABLE_STATES",
    "ENDED_STATES",
    "OrderItem",
    "OrderKey",
    "OrderState",
    "Payment",
    "PaymentMethod",
    "PurchasedItem",
    "RecurringOrder",
    "Subscription",
    "SubscriptionState",
]
