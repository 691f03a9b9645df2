"""
Celery tasks for recurring orders.

Tasks are thin synchronous wrappers around async helpers, which run the
queue-agnostic job handlers against the configured ``RecurringRuntime``.
Declines the dunning schedule wants retried are turned into Celery retries
with the schedule's delay.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import structlog
from celery import Task

from recurring_billing.billing.exceptions import BillingError
from recurring_billing.billing.recurring.dunning import DeclineRetryCoordinator
from recurring_billing.billing.recurring.gateways import InMemoryPaymentGateway, PaymentGateway
from recurring_billing.billing.recurring.jobs import (
    CloseRecurringOrderJob,
    JobResult,
    RenewRecurringOrderJob,
)
from recurring_billing.billing.recurring.models import OrderState
from recurring_billing.billing.recurring.order_manager import RecurringOrderManager
from recurring_billing.billing.recurring.repository import (
    BillingScheduleRepository,
    InMemoryBillingScheduleRepository,
    InMemoryOrderRepository,
    InMemorySubscriptionRepository,
    OrderRepository,
    SubscriptionRepository,
)
from recurring_billing.celery_app import celery_app
from recurring_billing.events import EventBus

logger = structlog.get_logger(__name__)


# ============================================================================
# Runtime wiring
# ============================================================================


@dataclass
class RecurringRuntime:
    """Collaborators shared by the recurring billing tasks."""

    manager: RecurringOrderManager
    coordinator: DeclineRetryCoordinator
    close_job: CloseRecurringOrderJob = field(init=False)
    renew_job: RenewRecurringOrderJob = field(init=False)

    def __post_init__(self) -> None:
        self.close_job = CloseRecurringOrderJob(self.manager, self.coordinator)
        self.renew_job = RenewRecurringOrderJob(self.manager)


def build_runtime(
    orders: OrderRepository,
    subscriptions: SubscriptionRepository,
    billing_schedules: BillingScheduleRepository,
    payment_gateway: PaymentGateway,
    event_bus: EventBus | None = None,
    **manager_options: Any,
) -> RecurringRuntime:
    """Wire a manager and coordinator over shared repositories."""
    manager = RecurringOrderManager(
        orders,
        subscriptions,
        billing_schedules,
        payment_gateway,
        event_bus=event_bus,
        **manager_options,
    )
    coordinator = DeclineRetryCoordinator(
        orders,
        subscriptions,
        billing_schedules,
        event_bus=manager.event_bus,
        order_workflow=manager.workflow,
    )
    return RecurringRuntime(manager=manager, coordinator=coordinator)


_runtime: RecurringRuntime | None = None


def get_runtime() -> RecurringRuntime:
    """Get the runtime used by tasks, defaulting to in-memory storage."""
    global _runtime
    if _runtime is None:
        logger.warning("No recurring runtime configured, using in-memory storage")
        _runtime = build_runtime(
            InMemoryOrderRepository(),
            InMemorySubscriptionRepository(),
            InMemoryBillingScheduleRepository(),
            InMemoryPaymentGateway(),
        )
    return _runtime


def set_runtime(runtime: RecurringRuntime | None) -> None:
    """Replace the runtime used by tasks."""
    global _runtime
    _runtime = runtime


# ============================================================================
# Async helpers
# ============================================================================


async def _close_order(order_id: str, retry_count: int) -> JobResult:
    return await get_runtime().close_job.process({"order_id": order_id}, retry_count)


async def _renew_order(order_id: str) -> JobResult:
    return await get_runtime().renew_job.process({"order_id": order_id})


async def _find_elapsed_orders() -> list[str]:
    """
    Refresh draft orders whose period ended and mark the ones to close.

    Orders that already have a close job in flight, including orders waiting
    for a dunning retry, are refreshed but not returned again.
    """
    manager = get_runtime().manager
    now = manager.clock()
    elapsed = await manager.orders.list_drafts_ending_before(now)

    order_ids: list[str] = []
    for order in elapsed:
        await manager.refresh_order(order)
        if order.state != OrderState.DRAFT:
            continue
        if order.close_queued_time is not None:
            logger.debug(
                "Close job already queued",
                order_id=order.order_id,
                queued_time=order.close_queued_time.isoformat(),
            )
            continue
        order.close_queued_time = now
        await manager.orders.save(order)
        order_ids.append(order.order_id)
    return order_ids


async def _ensure_orders() -> dict[str, Any]:
    manager = get_runtime().manager
    subscriptions = await manager.subscriptions.list_active()

    results = await asyncio.gather(
        *(manager.ensure_order(subscription) for subscription in subscriptions),
        return_exceptions=True,
    )

    errors: list[dict[str, Any]] = []
    order_ids: set[str] = set()
    for subscription, result in zip(subscriptions, results, strict=True):
        if isinstance(result, BillingError):
            logger.error(
                "Failed to ensure recurring order",
                subscription_id=subscription.subscription_id,
                error=result.message,
            )
            errors.append({"subscription_id": subscription.subscription_id, **result.to_dict()})
        elif isinstance(result, BaseException):
            raise result
        else:
            order_ids.add(result.order_id)

    return {
        "processed": len(subscriptions) - len(errors),
        "errors": len(errors),
        "order_ids": sorted(order_ids),
        "error_details": errors,
    }


# ============================================================================
# Celery tasks
# ============================================================================


@celery_app.task(name="recurring.close_order", bind=True, max_retries=None)
def close_recurring_order_task(self: Task, order_id: str) -> dict[str, Any]:
    """
    Close a recurring order.

    Retryable failures are rescheduled with the dunning delay. On success
    the renewal of the order is queued.
    """
    retry_count = self.request.retries or 0
    result = asyncio.run(_close_order(order_id, retry_count))

    if result.is_success:
        renew_recurring_order_task.apply_async(args=[order_id])
    elif result.is_retryable:
        logger.info(
            "Scheduling recurring order retry",
            order_id=order_id,
            retry_count=retry_count,
            countdown=result.retry_delay,
        )
        raise self.retry(countdown=result.retry_delay, max_retries=result.max_retries)
    else:
        logger.error(
            "Recurring order close failed",
            order_id=order_id,
            message=result.message,
        )

    return result.model_dump(mode="json")


@celery_app.task(name="recurring.renew_order")
def renew_recurring_order_task(order_id: str) -> dict[str, Any]:
    """Renew a recurring order into its next billing period."""
    result = asyncio.run(_renew_order(order_id))
    return result.model_dump(mode="json")


@celery_app.task(name="recurring.process_elapsed_orders")
def process_elapsed_orders_task() -> dict[str, Any]:
    """Periodic task queueing close jobs for orders whose billing period ended."""
    order_ids = asyncio.run(_find_elapsed_orders())
    for order_id in order_ids:
        close_recurring_order_task.apply_async(args=[order_id])

    logger.info("Elapsed recurring orders queued", count=len(order_ids))
    return {"queued": len(order_ids), "order_ids": order_ids}


@celery_app.task(name="recurring.ensure_orders")
def ensure_recurring_orders_task() -> dict[str, Any]:
    """Periodic task ensuring a draft order for every active subscription."""
    result = asyncio.run(_ensure_orders())
    logger.info(
        "Recurring orders ensured",
        processed=result["processed"],
        errors=result["errors"],
    )
    return result


__all__ = [
    "RecurringRuntime",
    "build_runtime",
    "close_recurring_order_task",
    "ensure_recurring_orders_task",
    "get_runtime",
    "process_elapsed_orders_task",
    "renew_recurring_order_task",
    "set_runtime",
]
