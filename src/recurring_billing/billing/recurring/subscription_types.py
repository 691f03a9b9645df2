"""
Subscription types.

A subscription type holds the billing logic for one kind of subscription:
which charges a billing period produces and how to react when a
subscription is activated or renewed. Types are looked up by the
subscription's ``type`` tag in a ``SubscriptionTypeRegistry``.
"""

from typing import TYPE_CHECKING

import structlog

from recurring_billing.billing.config import get_billing_config
from recurring_billing.billing.exceptions import BillingConfigurationError
from recurring_billing.billing.money_utils import MoneyHandler, money_handler
from recurring_billing.billing.recurring.billing_period import BillingPeriod
from recurring_billing.billing.recurring.charge import Charge
from recurring_billing.billing.recurring.models import RecurringOrder, Subscription

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = structlog.get_logger(__name__)


class SubscriptionType:
    """
    Default subscription type behaviour.

    Subclasses override ``collect_charges`` to emit several charges (metered
    add-ons, setup fees...) and the ``on_*`` hooks to keep extra data in sync.
    """

    type_id: str = "standalone"
    label: str = "Standalone"
    purchasable_entity_type_id: str | None = None

    def __init__(
        self,
        proration_enabled: bool | None = None,
        money: MoneyHandler | None = None,
    ) -> None:
        self._proration_enabled = proration_enabled
        self.money = money or money_handler

    @property
    def proration_enabled(self) -> bool:
        if self._proration_enabled is None:
            return get_billing_config().proration_enabled
        return self._proration_enabled

    def collect_charges(
        self, subscription: Subscription, billing_period: BillingPeriod
    ) -> list[Charge]:
        """
        Collect the charges for a subscription's billing period.

        The subscription is charged for the part of the period it was
        active in. The unit price is prorated by the ratio of seconds covered
        and the charge's billing period is the covered part, not the nominal
        period.
        """
        effective_period = billing_period.intersect(subscription.start_time, subscription.end_time)
        if effective_period is None:
            return []

        unit_price = subscription.unit_price
        if self.proration_enabled:
            unit_price = self.money.prorate(
                unit_price, effective_period.duration, billing_period.duration
            )

        return [
            Charge(
                purchased_item=subscription.purchased_item,
                title=self.charge_title(subscription),
                quantity=subscription.quantity,
                unit_price=unit_price,
                billing_period=effective_period,
            )
        ]

    def charge_title(self, subscription: Subscription) -> str:
        if subscription.title:
            return subscription.title
        if subscription.purchased_item and subscription.purchased_item.title:
            return subscription.purchased_item.title
        return self.label

    def order_item_type(self) -> str:
        return f"recurring_{self.type_id}"

    def on_subscription_activate(self, subscription: Subscription, order: RecurringOrder) -> None:
        """Called when the subscription's first recurring order is created."""

    def on_subscription_renew(
        self,
        subscription: Subscription,
        order: RecurringOrder,
        next_order: RecurringOrder,
    ) -> None:
        """Called before the subscription and its next order are saved."""


class StandaloneSubscriptionType(SubscriptionType):
    """Subscriptions not backed by a purchasable entity."""

    type_id = "standalone"
    label = "Standalone"


class ProductVariationSubscriptionType(SubscriptionType):
    """Subscriptions to product variations."""

    type_id = "product_variation"
    label = "Product variation"
    purchasable_entity_type_id = "product_variation"


class SubscriptionTypeRegistry:
    """Maps subscription type tags to their implementation."""

    def __init__(self, types: "Iterable[SubscriptionType] | None" = None) -> None:
        self._types: dict[str, SubscriptionType] = {}
        for subscription_type in types or ():
            self.register(subscription_type)

    @classmethod
    def default(cls) -> "SubscriptionTypeRegistry":
        return cls([StandaloneSubscriptionType(), ProductVariationSubscriptionType()])

    def register(self, subscription_type: SubscriptionType) -> None:
        if subscription_type.type_id in self._types:
            logger.info("Replacing subscription type", type_id=subscription_type.type_id)
        self._types[subscription_type.type_id] = subscription_type

    def get(self, type_id: str) -> SubscriptionType:
        try:
            return self._types[type_id]
        except KeyError:
            raise BillingConfigurationError(
                f"Unknown subscription type: {type_id}", config_key="subscription_type"
            ) from None

    def for_subscription(self, subscription: Subscription) -> SubscriptionType:
        return self.get(subscription.type)

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._types


__all__ = [
    "ProductVariationSubscriptionType",
    "StandaloneSubscriptionType",
    "SubscriptionType",
    "SubscriptionTypeRegistry",
]
