"""Tests for the in-memory repositories."""

from datetime import UTC, datetime

import pytest

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
    SubscriptionState,
)
from recurring_billing.billing.recurring.repository import (
    BillingScheduleRepository,
    OrderRepository,
    SubscriptionRepository,
)

pytestmark = pytest.mark.unit


def _period(hour: int) -> BillingPeriod:
    return BillingPeriod(
        start=datetime(2017, 2, 24, hour, tzinfo=UTC),
        end=datetime(2017, 2, 24, hour + 1, tzinfo=UTC),
    )


def _order(payment_method, hour: int = 17, **overrides) -> RecurringOrder:
    values = {
        "store_id": "store_1",
        "customer_id": "cust_1",
        "billing_schedule_id": "hourly",
        "payment_method": payment_method,
        "billing_period": _period(hour),
        "currency_code": "USD",
    }
    values.update(overrides)
    return RecurringOrder(**values)


class TestProtocols:
    """Test the in-memory classes satisfy the repository protocols."""

    def test_runtime_checkable(self, order_repo, subscription_repo, schedule_repo):
        assert isinstance(order_repo, OrderRepository)
        assert isinstance(subscription_repo, SubscriptionRepository)
        assert isinstance(schedule_repo, BillingScheduleRepository)


class TestInMemoryOrderRepository:
    """Test order storage."""

    async def test_get_missing(self, order_repo):
        with pytest.raises(OrderNotFoundError) as exc_info:
            await order_repo.get("ord_missing")

        assert exc_info.value.context == {"order_id": "ord_missing"}
        assert exc_info.value.status_code == 404

    async def test_stores_copies(self, order_repo, payment_method):
        order = _order(payment_method)
        await order_repo.save(order)

        order.state = OrderState.CANCELED
        loaded = await order_repo.get(order.order_id)

        assert loaded.state == OrderState.DRAFT
        loaded.subscription_ids.append("sub_x")
        assert (await order_repo.get(order.order_id)).subscription_ids == []

    async def test_find_draft_by_key_and_period(self, order_repo, payment_method):
        order = _order(payment_method)
        other_period = _order(payment_method, hour=18)
        await order_repo.save(order)
        await order_repo.save(other_period)

        found = await order_repo.find_draft(order.key, _period(17))

        assert found is not None
        assert found.order_id == order.order_id

    async def test_find_draft_ignores_other_keys_and_states(self, order_repo, payment_method):
        closed = _order(payment_method, state=OrderState.COMPLETED)
        other_customer = _order(payment_method, customer_id="cust_2")
        await order_repo.save(closed)
        await order_repo.save(other_customer)

        key = OrderKey(
            store_id="store_1",
            billing_schedule_id="hourly",
            customer_id="cust_1",
            payment_method_id="pm_1",
            currency_code="USD",
        )

        assert await order_repo.find_draft(key, _period(17)) is None

    async def test_list_drafts_ending_before(self, order_repo, payment_method):
        early = _order(payment_method, hour=15)
        ended = _order(payment_method, hour=16)
        current = _order(payment_method, hour=17)
        placed = _order(payment_method, hour=14, state=OrderState.COMPLETED)
        for order in (current, ended, early, placed):
            await order_repo.save(order)

        drafts = await order_repo.list_drafts_ending_before(datetime(2017, 2, 24, 17, tzinfo=UTC))

        assert [order.order_id for order in drafts] == [early.order_id, ended.order_id]


class TestInMemorySubscriptionRepository:
    """Test subscription storage."""

    async def test_get_missing(self, subscription_repo):
        with pytest.raises(SubscriptionNotFoundError):
            await subscription_repo.get("sub_missing")

    async def test_list_active(self, subscription_repo, make_subscription):
        active = make_subscription()
        canceled = make_subscription(state=SubscriptionState.CANCELED)
        await subscription_repo.save(active)
        await subscription_repo.save(canceled)

        listed = await subscription_repo.list_active()

        assert [s.subscription_id for s in listed] == [active.subscription_id]


class TestInMemoryBillingScheduleRepository:
    """Test schedule storage."""

    async def test_round_trip_and_missing(self, schedule_repo, billing_schedule):
        loaded = await schedule_repo.get("hourly")

        assert loaded == billing_schedule
        with pytest.raises(BillingScheduleNotFoundError):
            await schedule_repo.get("weekly")
