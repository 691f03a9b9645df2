"""
Test fixtures for recurring orders.

The default scenario mirrors a customer subscribing mid-hour: an active
subscription starting 2017-02-24 17:30 UTC on an hourly fixed schedule,
2 units at 2.00 USD each.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from moneyed import Money

from recurring_billing.billing.events import RecurringEvents
from recurring_billing.billing.recurring.dunning import DeclineRetryCoordinator
from recurring_billing.billing.recurring.gateways import InMemoryPaymentGateway
from recurring_billing.billing.recurring.models import (
    PaymentMethod,
    PurchasedItem,
    Subscription,
    SubscriptionState,
)
from recurring_billing.billing.recurring.order_manager import RecurringOrderManager
from recurring_billing.billing.recurring.repository import (
    InMemoryBillingScheduleRepository,
    InMemoryOrderRepository,
    InMemorySubscriptionRepository,
)
from recurring_billing.billing.recurring.schedules import (
    BillingSchedule,
    Interval,
    IntervalUnit,
)
from recurring_billing.events import Event, EventBus

SUBSCRIPTION_START = datetime(2017, 2, 24, 17, 30, tzinfo=UTC)


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class EventRecorder:
    """Collects every recurring billing event published on a bus."""

    def __init__(self, bus: EventBus) -> None:
        self.events: list[Event] = []
        for name, value in vars(RecurringEvents).items():
            if name.isupper():
                bus.subscribe(value, self.events.append)

    def of_type(self, event_type: str) -> list[Event]:
        return [event for event in self.events if event.event_type == event_type]


@pytest.fixture
def clock():
    return FixedClock(datetime(2017, 2, 24, 17, 45, tzinfo=UTC))


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def recorder(event_bus):
    return EventRecorder(event_bus)


@pytest.fixture
def order_repo():
    return InMemoryOrderRepository()


@pytest.fixture
def subscription_repo():
    return InMemorySubscriptionRepository()


@pytest.fixture
def schedule_repo():
    return InMemoryBillingScheduleRepository()


@pytest.fixture
def gateway():
    return InMemoryPaymentGateway(gateway_id="example")


@pytest.fixture
def payment_method():
    return PaymentMethod(
        payment_method_id="pm_1",
        payment_gateway_id="example",
        billing_profile={"name": "Jane Customer", "country_code": "US"},
    )


@pytest.fixture
def purchased_item():
    return PurchasedItem(item_id="var_1", title="Basic subscription")


@pytest_asyncio.fixture
async def billing_schedule(schedule_repo):
    schedule = BillingSchedule(
        billing_schedule_id="hourly",
        label="Hourly schedule",
        plugin="fixed",
        interval=Interval(number=1, unit=IntervalUnit.HOUR),
    )
    await schedule_repo.save(schedule)
    return schedule


@pytest.fixture
def make_subscription(payment_method, purchased_item):
    def _make(**overrides):
        values = {
            "store_id": "store_1",
            "billing_schedule_id": "hourly",
            "customer_id": "cust_1",
            "payment_method": payment_method,
            "purchased_item": purchased_item,
            "title": purchased_item.title,
            "quantity": Decimal("2"),
            "unit_price": Money("2", "USD"),
            "state": SubscriptionState.ACTIVE,
            "start_time": SUBSCRIPTION_START,
        }
        values.update(overrides)
        return Subscription(**values)

    return _make


@pytest_asyncio.fixture
async def subscription(make_subscription, subscription_repo, billing_schedule):
    subscription = make_subscription()
    await subscription_repo.save(subscription)
    return subscription


@pytest.fixture
def manager(order_repo, subscription_repo, schedule_repo, gateway, event_bus, clock):
    return RecurringOrderManager(
        order_repo,
        subscription_repo,
        schedule_repo,
        gateway,
        event_bus=event_bus,
        clock=clock,
    )


@pytest.fixture
def coordinator(order_repo, subscription_repo, schedule_repo, event_bus):
    return DeclineRetryCoordinator(
        order_repo,
        subscription_repo,
        schedule_repo,
        event_bus=event_bus,
    )
