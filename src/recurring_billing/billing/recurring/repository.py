"""
Persistence contracts for recurring billing entities.

The engine depends only on the protocols below. The in-memory
implementations store deep copies, so an entity loaded from a repository
must be saved again before changes become visible to other callers.
"""

from datetime import datetime
from typing import Protocol, runtime_checkable

import structlog

from recurring_billing.billing.exceptions import (
    BillingScheduleNotFoundError,
    OrderNotFoundError,
    SubscriptionNotFoundError,
)
from recurring_billing.billing.recurring.billing_period import BillingPeriod
from recurring_billing.billing.recurring.models import (
    OrderKey,
    OrderState,
    RecurringOrder,
    Subscription,
    SubscriptionState,
)
from recurring_billing.billing.recurring.schedules import BillingSchedule

logger = structlog.get_logger(__name__)


@runtime_checkable
class OrderRepository(Protocol):
    """Storage for recurring orders."""

    async def get(self, order_id: str) -> RecurringOrder:
        """Load an order; raises OrderNotFoundError."""
        ...

    async def save(self, order: RecurringOrder) -> None:
        ...

    async def find_draft(self, key: OrderKey, period: BillingPeriod) -> RecurringOrder | None:
        """Draft order with the given grouping key and billing period, if any."""
        ...

    async def list_drafts_ending_before(self, moment: datetime) -> list[RecurringOrder]:
        """Draft orders whose billing period ended at or before ``moment``."""
        ...


@runtime_checkable
class SubscriptionRepository(Protocol):
    """Storage for subscriptions."""

    async def get(self, subscription_id: str) -> Subscription:
        """Load a subscription; raises SubscriptionNotFoundError."""
        ...

    async def save(self, subscription: Subscription) -> None:
        ...

    async def list_active(self) -> list[Subscription]:
        ...


@runtime_checkable
class BillingScheduleRepository(Protocol):
    """Storage for billing schedules."""

    async def get(self, billing_schedule_id: str) -> BillingSchedule:
        """Load a billing schedule; raises BillingScheduleNotFoundError."""
        ...

    async def save(self, billing_schedule: BillingSchedule) -> None:
        ...


# ============================================================================
# In-memory implementations
# ============================================================================


class InMemoryOrderRepository:
    """Dictionary-backed order storage."""

    def __init__(self) -> None:
        self._orders: dict[str, RecurringOrder] = {}
        self.save_count = 0

    async def get(self, order_id: str) -> RecurringOrder:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found", order_id=order_id)
        return order.model_copy(deep=True)

    async def save(self, order: RecurringOrder) -> None:
        self._orders[order.order_id] = order.model_copy(deep=True)
        self.save_count += 1
        logger.debug("Order saved", order_id=order.order_id, state=order.state.value)

    async def find_draft(self, key: OrderKey, period: BillingPeriod) -> RecurringOrder | None:
        for order in self._orders.values():
            if (
                order.state == OrderState.DRAFT
                and order.key == key
                and order.billing_period == period
            ):
                return order.model_copy(deep=True)
        return None

    async def list_drafts_ending_before(self, moment: datetime) -> list[RecurringOrder]:
        drafts = [
            order
            for order in self._orders.values()
            if order.state == OrderState.DRAFT and order.billing_period.end <= moment
        ]
        drafts.sort(key=lambda order: order.billing_period)
        return [order.model_copy(deep=True) for order in drafts]

    def all(self) -> list[RecurringOrder]:
        return [order.model_copy(deep=True) for order in self._orders.values()]


class InMemorySubscriptionRepository:
    """Dictionary-backed subscription storage."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self.save_count = 0

    async def get(self, subscription_id: str) -> Subscription:
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(
                f"Subscription {subscription_id} not found", subscription_id=subscription_id
            )
        return subscription.model_copy(deep=True)

    async def save(self, subscription: Subscription) -> None:
        self._subscriptions[subscription.subscription_id] = subscription.model_copy(deep=True)
        self.save_count += 1

    async def list_active(self) -> list[Subscription]:
        return [
            subscription.model_copy(deep=True)
            for subscription in self._subscriptions.values()
            if subscription.state == SubscriptionState.ACTIVE
        ]


class InMemoryBillingScheduleRepository:
    """Dictionary-backed billing schedule storage."""

    def __init__(self) -> None:
        self._schedules: dict[str, BillingSchedule] = {}

    async def get(self, billing_schedule_id: str) -> BillingSchedule:
        schedule = self._schedules.get(billing_schedule_id)
        if schedule is None:
            raise BillingScheduleNotFoundError(
                f"Billing schedule {billing_schedule_id} not found",
                billing_schedule_id=billing_schedule_id,
            )
        return schedule.model_copy(deep=True)

    async def save(self, billing_schedule: BillingSchedule) -> None:
        self._schedules[billing_schedule.billing_schedule_id] = billing_schedule.model_copy(
            deep=True
        )


__all__ = [
    "BillingScheduleRepository",
    "InMemoryBillingScheduleRepository",
    "InMemoryOrderRepository",
    "InMemorySubscriptionRepository",
    "OrderRepository",
    "SubscriptionRepository",
]
