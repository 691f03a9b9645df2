"""
Recurring order manager.

Creates, refreshes, closes and renews the draft orders that accumulate a
billing period's charges. Exactly one draft order exists per order key and
billing period; subscriptions sharing a key are billed on the same order.
"""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from recurring_billing.billing.events import (
    emit_order_canceled,
    emit_order_created,
    emit_order_paid,
    emit_subscription_renewed,
)
from recurring_billing.billing.exceptions import (
    OrderNotFoundError,
    OrderStateError,
    PaymentMethodNotFoundError,
    SubscriptionNotFoundError,
)
from recurring_billing.billing.money_utils import MoneyHandler, money_handler
from recurring_billing.billing.recurring.billing_period import BillingPeriod
from recurring_billing.billing.recurring.charge import Charge
from recurring_billing.billing.recurring.gateways import PaymentGateway
from recurring_billing.billing.recurring.models import (
    CHARGEABLE_STATES,
    ENDED_STATES,
    OrderItem,
    OrderKey,
    OrderState,
    Payment,
    RecurringOrder,
    Subscription,
    SubscriptionState,
)
from recurring_billing.billing.recurring.repository import (
    BillingScheduleRepository,
    OrderRepository,
    SubscriptionRepository,
)
from recurring_billing.billing.recurring.schedules import BillingSchedule, BillingType
from recurring_billing.billing.recurring.subscription_types import SubscriptionTypeRegistry
from recurring_billing.billing.recurring.workflow import Workflow, order_workflow
from recurring_billing.events import EventBus, get_event_bus
from recurring_billing.logging import log_audit_event

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


async def collect_order_subscriptions(
    subscriptions: SubscriptionRepository, order: RecurringOrder
) -> list[Subscription]:
    """
    Load the subscriptions linked to an order.

    Missing subscriptions and subscriptions moved to another billing schedule
    are logged and skipped.
    """
    collected: list[Subscription] = []
    for subscription_id in order.subscription_ids:
        try:
            subscription = await subscriptions.get(subscription_id)
        except SubscriptionNotFoundError:
            logger.warning(
                "Linked subscription not found",
                order_id=order.order_id,
                subscription_id=subscription_id,
            )
            continue
        if subscription.billing_schedule_id != order.billing_schedule_id:
            logger.warning(
                "Linked subscription uses a different billing schedule",
                order_id=order.order_id,
                subscription_id=subscription_id,
                billing_schedule_id=subscription.billing_schedule_id,
            )
            continue
        collected.append(subscription)
    return collected


class RecurringOrderManager:
    """Manages the lifecycle of recurring orders."""

    def __init__(
        self,
        orders: OrderRepository,
        subscriptions: SubscriptionRepository,
        billing_schedules: BillingScheduleRepository,
        payment_gateway: PaymentGateway,
        event_bus: EventBus | None = None,
        subscription_types: SubscriptionTypeRegistry | None = None,
        workflow: Workflow[OrderState] | None = None,
        clock: Callable[[], datetime] | None = None,
        money: MoneyHandler | None = None,
    ) -> None:
        self.orders = orders
        self.subscriptions = subscriptions
        self.billing_schedules = billing_schedules
        self.payment_gateway = payment_gateway
        self.event_bus = event_bus or get_event_bus()
        self.subscription_types = subscription_types or SubscriptionTypeRegistry.default()
        self.workflow = workflow or order_workflow
        self.clock = clock or _utcnow
        self.money = money or money_handler

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def ensure_order(self, subscription: Subscription) -> RecurringOrder:
        """
        Ensure a draft order exists for the subscription's current period.

        The first order covers the period containing the subscription's start
        time; later calls use the period containing the current time. A draft for
        the period that the subscription is linked to, or that shares its order
        key, is reused.

        Args:
            subscription: Subscription to bill; gains the order id and is saved

        Returns:
            The refreshed draft order
        """
        schedule = await self.billing_schedules.get(subscription.billing_schedule_id)
        subscription_type = self.subscription_types.for_subscription(subscription)

        first_order = not subscription.order_ids
        reference_time = subscription.start_time if first_order else self.clock()
        period = schedule.period_for(reference_time, anchor=subscription.start_time)

        order = await self._find_draft(subscription, period)
        created = order is None
        if order is None:
            order = self._create_order(subscription, period)
            logger.info(
                "Recurring order created",
                order_id=order.order_id,
                subscription_id=subscription.subscription_id,
                billing_period=str(period),
            )

        order.link_subscription(subscription.subscription_id)
        if first_order:
            subscription_type.on_subscription_activate(subscription, order)

        subscription.add_order(order.order_id)
        await self.subscriptions.save(subscription)

        changed = await self._refresh(order, schedule)
        if created or changed:
            await self.orders.save(order)

        if created:
            await emit_order_created(order, event_bus=self.event_bus)
        if changed and order.state == OrderState.CANCELED:
            await emit_order_canceled(order, event_bus=self.event_bus)
        return order

    async def refresh_order(self, order: RecurringOrder) -> RecurringOrder:
        """
        Bring a draft order's payment details and items in line with its subscriptions.

        Existing items are updated in place so their ids survive a refresh.
        An order left without items is canceled. The order is only saved
        when something changed.
        """
        if order.state != OrderState.DRAFT:
            logger.warning(
                "Skipping refresh of non-draft order",
                order_id=order.order_id,
                state=order.state.value,
            )
            return order

        schedule = await self.billing_schedules.get(order.billing_schedule_id)
        changed = await self._refresh(order, schedule)
        if changed:
            await self.orders.save(order)
            if order.state == OrderState.CANCELED:
                await emit_order_canceled(order, event_bus=self.event_bus)
        return order

    async def close_order(self, order: RecurringOrder) -> Payment | None:
        """
        Charge a draft order and place it.

        Returns:
            The captured payment, or None for zero-total orders which are
            placed without a charge

        Raises:
            OrderStateError: The order is not a draft
            PaymentMethodNotFoundError: No chargeable payment method
            DeclineError: The gateway declined the charge
        """
        if order.state != OrderState.DRAFT:
            raise OrderStateError(
                f"Order {order.order_id} cannot be closed in state '{order.state.value}'",
                order_id=order.order_id,
                current_state=order.state.value,
                required_state=OrderState.DRAFT.value,
            )

        total = order.total_price
        if total.amount == 0:
            self._place(order)
            await self.orders.save(order)
            logger.info("Zero-total recurring order placed", order_id=order.order_id)
            return None

        payment_method = order.payment_method
        if payment_method is None or not payment_method.is_resolvable:
            logger.warning("Recurring order has no payment method", order_id=order.order_id)
            raise PaymentMethodNotFoundError(order_id=order.order_id)

        logger.info(
            "Capturing recurring order payment",
            order_id=order.order_id,
            payment_method_id=payment_method.payment_method_id,
            amount=str(total.amount),
            currency=total.currency.code,
        )
        payment = await self.payment_gateway.capture(order, payment_method)

        self._place(order)
        await self.orders.save(order)

        log_audit_event(
            "recurring_order.paid",
            resource_type="recurring_order",
            resource_id=order.order_id,
            customer_id=order.customer_id,
            payment_id=payment.payment_id,
            amount=self.money.format_money(payment.amount),
        )
        await emit_order_paid(order, payment, event_bus=self.event_bus)
        return payment

    async def renew_order(self, order: RecurringOrder) -> RecurringOrder | None:
        """
        Create or reuse the draft order for the period after ``order``'s.

        Only subscriptions that are still active at renewal time are carried
        over. When none are, nothing is persisted and None is returned.
        """
        subscriptions = [
            subscription
            for subscription in await self.collect_subscriptions(order)
            if subscription.state == SubscriptionState.ACTIVE
        ]
        if not subscriptions:
            logger.info("No active subscriptions to renew", order_id=order.order_id)
            return None

        schedule = await self.billing_schedules.get(order.billing_schedule_id)
        now = self.clock()
        next_period = schedule.period_for(now, order.billing_period)

        next_order = await self._find_draft(subscriptions[0], next_period)
        created = next_order is None
        if next_order is None:
            next_order = self._create_order(subscriptions[0], next_period)

        for subscription in subscriptions:
            next_order.link_subscription(subscription.subscription_id)
            subscription.add_order(next_order.order_id)
            subscription.renewed_time = now
            self.subscription_types.for_subscription(subscription).on_subscription_renew(
                subscription, order, next_order
            )
            await self.subscriptions.save(subscription)

        await self._refresh(next_order, schedule)
        await self.orders.save(next_order)

        logger.info(
            "Recurring order renewed",
            order_id=order.order_id,
            next_order_id=next_order.order_id,
            billing_period=str(next_period),
            subscription_count=len(subscriptions),
        )
        if created:
            await emit_order_created(next_order, event_bus=self.event_bus)
        for subscription in subscriptions:
            await emit_subscription_renewed(
                subscription, order, next_order, event_bus=self.event_bus
            )
        return next_order

    async def collect_subscriptions(self, order: RecurringOrder) -> list[Subscription]:
        """Load the subscriptions linked to an order, skipping missing ones."""
        return await collect_order_subscriptions(self.subscriptions, order)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _find_draft(
        self, subscription: Subscription, period: BillingPeriod
    ) -> RecurringOrder | None:
        """
        Find the draft order billing ``subscription`` for ``period``.

        A draft the subscription is already linked to wins over the order key,
        so a changed payment method is picked up by refreshing that draft
        instead of opening a second order for the same period.
        """
        for order_id in reversed(subscription.order_ids):
            try:
                order = await self.orders.get(order_id)
            except OrderNotFoundError:
                continue
            if order.state == OrderState.DRAFT and order.billing_period == period:
                return order
        return await self.orders.find_draft(OrderKey.for_subscription(subscription), period)

    def _create_order(self, subscription: Subscription, period: BillingPeriod) -> RecurringOrder:
        order = RecurringOrder(
            store_id=subscription.store_id,
            customer_id=subscription.customer_id,
            billing_schedule_id=subscription.billing_schedule_id,
            billing_period=period,
            currency_code=subscription.currency_code,
            created_time=self.clock(),
        )
        self._copy_payment_details(order, [subscription])
        return order

    def _place(self, order: RecurringOrder) -> None:
        self.workflow.apply_transition(order, "place")
        order.placed_time = self.clock()

    @staticmethod
    def _copy_payment_details(order: RecurringOrder, subscriptions: list[Subscription]) -> None:
        for subscription in subscriptions:
            payment_method = subscription.payment_method
            if payment_method is not None:
                order.payment_method = payment_method
                order.payment_gateway_id = payment_method.payment_gateway_id
                order.billing_profile = payment_method.billing_profile
                return
        order.clear_payment_details()

    @staticmethod
    def _is_chargeable(
        subscription: Subscription, schedule: BillingSchedule, period: BillingPeriod
    ) -> bool:
        if subscription.state in CHARGEABLE_STATES:
            return True
        # Postpaid periods still bill the time used before a cancellation
        return (
            schedule.billing_type == BillingType.POSTPAID
            and subscription.state in ENDED_STATES
            and subscription.end_time is not None
            and subscription.end_time > period.start
        )

    async def _refresh(self, order: RecurringOrder, schedule: BillingSchedule) -> bool:
        """Refresh ``order`` in place; returns whether anything changed."""
        before = order.model_copy(deep=True)
        subscriptions = await self.collect_subscriptions(order)
        self._copy_payment_details(order, subscriptions)

        items: list[OrderItem] = []
        for subscription in subscriptions:
            if not self._is_chargeable(subscription, schedule, order.billing_period):
                continue
            subscription_type = self.subscription_types.for_subscription(subscription)
            charges = subscription_type.collect_charges(subscription, order.billing_period)
            existing = order.items_for(subscription.subscription_id)
            for position, charge in enumerate(charges):
                previous = existing[position] if position < len(existing) else None
                items.append(
                    self._build_item(
                        subscription, charge, subscription_type.order_item_type(), previous
                    )
                )
        order.items = items

        if not items:
            if order.state == OrderState.DRAFT:
                self.workflow.apply_transition(order, "cancel")
                logger.info("Recurring order canceled, no charges left", order_id=order.order_id)
            order.clear_payment_details()

        return order != before

    @staticmethod
    def _build_item(
        subscription: Subscription,
        charge: Charge,
        item_type: str,
        previous: OrderItem | None,
    ) -> OrderItem:
        values = {
            "type": item_type,
            "subscription_id": subscription.subscription_id,
            "purchased_item": charge.purchased_item,
            "title": charge.title,
            "quantity": charge.quantity,
            "unit_price": charge.unit_price,
            "billing_period": charge.billing_period,
        }
        if previous is not None:
            return OrderItem(order_item_id=previous.order_item_id, **values)
        return OrderItem(**values)


__all__ = ["RecurringOrderManager", "collect_order_subscriptions"]
