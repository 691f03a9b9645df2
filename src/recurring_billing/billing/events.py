"""
Recurring billing event types and event emission helpers.

Handlers receive the order id and a plain-data snapshot taken at emission
time, never the live entity.
"""

from typing import TYPE_CHECKING, Any, Optional

import structlog

from recurring_billing.billing.money_models import MoneyField
from recurring_billing.events import EventPriority, get_event_bus

if TYPE_CHECKING:
    from recurring_billing.billing.recurring.models import (
        Payment,
        RecurringOrder,
        Subscription,
    )
    from recurring_billing.events import EventBus

logger = structlog.get_logger(__name__)


# ============================================================================
# Recurring Event Types
# ============================================================================


class RecurringEvents:
    """Recurring billing event type constants."""

    # Order events
    ORDER_CREATED = "recurring_order.created"
    ORDER_PAID = "recurring_order.paid"
    ORDER_PAYMENT_DECLINED = "recurring_order.payment_declined"
    ORDER_CANCELED = "recurring_order.canceled"

    # Subscription events
    SUBSCRIPTION_RENEWED = "subscription.renewed"
    SUBSCRIPTION_STATE_CHANGED = "subscription.state_changed"


# ============================================================================
# Snapshots
# ============================================================================


def order_snapshot(order: "RecurringOrder") -> dict[str, Any]:
    """Serializable copy of an order's billing-relevant fields."""
    return {
        "order_id": order.order_id,
        "state": order.state.value,
        "store_id": order.store_id,
        "customer_id": order.customer_id,
        "billing_schedule_id": order.billing_schedule_id,
        "payment_method_id": order.payment_method_id,
        "billing_period": {
            "start": order.billing_period.start.isoformat(),
            "end": order.billing_period.end.isoformat(),
        },
        "total_price": MoneyField.from_money(order.total_price).model_dump(),
        "subscription_ids": list(order.subscription_ids),
        "item_ids": [item.order_item_id for item in order.items],
    }


def _metadata(order: "RecurringOrder") -> dict[str, Any]:
    return {
        "customer_id": order.customer_id,
        "store_id": order.store_id,
        "source": "recurring_billing",
    }


# ============================================================================
# Event Emission Helpers
# ============================================================================


async def emit_order_created(
    order: "RecurringOrder",
    event_bus: Optional["EventBus"] = None,
) -> None:
    """Emit recurring order created event."""
    if event_bus is None:
        event_bus = get_event_bus()

    await event_bus.publish(
        event_type=RecurringEvents.ORDER_CREATED,
        payload={"order_id": order.order_id, "order": order_snapshot(order)},
        metadata=_metadata(order),
    )

    logger.info(
        "Recurring order created event emitted",
        order_id=order.order_id,
        billing_period=str(order.billing_period),
    )


async def emit_order_paid(
    order: "RecurringOrder",
    payment: "Payment",
    event_bus: Optional["EventBus"] = None,
) -> None:
    """
    Emit recurring order paid event.

    Args:
        order: The placed order
        payment: Captured payment
        event_bus: Event bus instance (injected, optional - will use global if not provided)
    """
    if event_bus is None:
        event_bus = get_event_bus()

    await event_bus.publish(
        event_type=RecurringEvents.ORDER_PAID,
        payload={
            "order_id": order.order_id,
            "payment_id": payment.payment_id,
            "amount": MoneyField.from_money(payment.amount).model_dump(),
            "order": order_snapshot(order),
        },
        metadata=_metadata(order),
        priority=EventPriority.HIGH,
    )

    logger.info(
        "Recurring order paid event emitted",
        order_id=order.order_id,
        payment_id=payment.payment_id,
    )


async def emit_payment_declined(
    order: "RecurringOrder",
    delay_days: int,
    retry_count: int,
    max_retries: int,
    event_bus: Optional["EventBus"] = None,
    **extra_data: Any,
) -> None:
    """
    Emit payment declined event.

    Args:
        order: Order whose payment was declined
        delay_days: Days until the next attempt, 0 when dunning is exhausted
        retry_count: Number of retries already attempted
        max_retries: Number of retries the billing schedule allows
        event_bus: Event bus instance (injected, optional)
        **extra_data: Additional event data
    """
    if event_bus is None:
        event_bus = get_event_bus()

    await event_bus.publish(
        event_type=RecurringEvents.ORDER_PAYMENT_DECLINED,
        payload={
            "order_id": order.order_id,
            "delay_days": delay_days,
            "retry_count": retry_count,
            "max_retries": max_retries,
            "order": order_snapshot(order),
            **extra_data,
        },
        metadata=_metadata(order),
        priority=EventPriority.HIGH,
    )

    logger.info(
        "Payment declined event emitted",
        order_id=order.order_id,
        retry_count=retry_count,
        max_retries=max_retries,
        delay_days=delay_days,
    )


async def emit_order_canceled(
    order: "RecurringOrder",
    event_bus: Optional["EventBus"] = None,
) -> None:
    """Emit recurring order canceled event."""
    if event_bus is None:
        event_bus = get_event_bus()

    await event_bus.publish(
        event_type=RecurringEvents.ORDER_CANCELED,
        payload={"order_id": order.order_id, "order": order_snapshot(order)},
        metadata=_metadata(order),
    )

    logger.info("Recurring order canceled event emitted", order_id=order.order_id)


async def emit_subscription_renewed(
    subscription: "Subscription",
    order: "RecurringOrder",
    next_order: "RecurringOrder",
    event_bus: Optional["EventBus"] = None,
) -> None:
    """Emit subscription renewed event."""
    if event_bus is None:
        event_bus = get_event_bus()

    await event_bus.publish(
        event_type=RecurringEvents.SUBSCRIPTION_RENEWED,
        payload={
            "subscription_id": subscription.subscription_id,
            "order_id": order.order_id,
            "next_order_id": next_order.order_id,
            "next_billing_period": {
                "start": next_order.billing_period.start.isoformat(),
                "end": next_order.billing_period.end.isoformat(),
            },
        },
        metadata={
            "customer_id": subscription.customer_id,
            "store_id": subscription.store_id,
            "source": "recurring_billing",
        },
    )

    logger.info(
        "Subscription renewed event emitted",
        subscription_id=subscription.subscription_id,
        next_order_id=next_order.order_id,
    )


async def emit_subscription_state_changed(
    subscription: "Subscription",
    from_state: str,
    to_state: str,
    event_bus: Optional["EventBus"] = None,
    **extra_data: Any,
) -> None:
    """Emit subscription state changed event."""
    if event_bus is None:
        event_bus = get_event_bus()

    await event_bus.publish(
        event_type=RecurringEvents.SUBSCRIPTION_STATE_CHANGED,
        payload={
            "subscription_id": subscription.subscription_id,
            "from_state": from_state,
            "to_state": to_state,
            **extra_data,
        },
        metadata={
            "customer_id": subscription.customer_id,
            "store_id": subscription.store_id,
            "source": "recurring_billing",
        },
    )

    logger.info(
        "Subscription state changed event emitted",
        subscription_id=subscription.subscription_id,
        from_state=from_state,
        to_state=to_state,
    )


__all__ = [
    "RecurringEvents",
    "emit_order_canceled",
    "emit_order_created",
    "emit_order_paid",
    "emit_payment_declined",
    "emit_subscription_renewed",
    "emit_subscription_state_changed",
    "order_snapshot",
]
