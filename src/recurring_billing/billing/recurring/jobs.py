"""
Queue job handlers for recurring orders.

Handlers are queue-agnostic: they return a ``JobResult`` telling the runner
whether the job succeeded and, for failures, how many retries are allowed
and how long to wait before the next one.
"""

from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from recurring_billing.billing.exceptions import (
    DeclineError,
    OrderNotFoundError,
    PaymentMethodNotFoundError,
)
from recurring_billing.billing.recurring.dunning import DeclineRetryCoordinator
from recurring_billing.billing.recurring.models import OrderState, RecurringOrder
from recurring_billing.billing.recurring.order_manager import RecurringOrderManager

logger = structlog.get_logger(__name__)

DUNNING_COMPLETE_MESSAGE = "Dunning complete, recurring order not paid."
ORDER_NOT_FOUND_MESSAGE = "Order not found."


class JobState(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class JobResult(BaseModel):
    """Outcome of processing one job."""

    model_config = ConfigDict(frozen=True)

    state: JobState
    message: str | None = None
    max_retries: int = Field(0, ge=0, description="Retries the runner may still attempt")
    retry_delay: int = Field(0, ge=0, description="Seconds to wait before retrying")
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, message: str | None = None, **data: Any) -> "JobResult":
        return cls(state=JobState.SUCCESS, message=message, data=data)

    @classmethod
    def failure(cls, message: str, max_retries: int = 0, retry_delay: int = 0) -> "JobResult":
        return cls(
            state=JobState.FAILURE,
            message=message,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )

    @property
    def is_success(self) -> bool:
        return self.state == JobState.SUCCESS

    @property
    def is_retryable(self) -> bool:
        return self.state == JobState.FAILURE and self.max_retries > 0


async def _load_order(manager: RecurringOrderManager, payload: dict[str, Any]) -> RecurringOrder:
    order_id = payload.get("order_id")
    if not order_id:
        raise OrderNotFoundError("Job payload has no order_id")
    return await manager.orders.get(str(order_id))


class CloseRecurringOrderJob:
    """Closes a recurring order, handing declines to the dunning coordinator."""

    job_type = "recurring_order_close"

    def __init__(
        self, manager: RecurringOrderManager, coordinator: DeclineRetryCoordinator
    ) -> None:
        self.manager = manager
        self.coordinator = coordinator

    async def process(self, payload: dict[str, Any], retry_count: int = 0) -> JobResult:
        try:
            order = await _load_order(self.manager, payload)
        except OrderNotFoundError:
            logger.warning("Close job order not found", order_id=payload.get("order_id"))
            return JobResult.failure(ORDER_NOT_FOUND_MESSAGE, max_retries=0)

        if order.state != OrderState.DRAFT:
            logger.info(
                "Order already closed",
                order_id=order.order_id,
                state=order.state.value,
            )
            return JobResult.success(f"Order is {order.state.value}, nothing to close.")

        try:
            payment = await self.manager.close_order(order)
        except PaymentMethodNotFoundError as e:
            # The next elapsed-orders run may queue it again once a payment method is set
            order.close_queued_time = None
            await self.manager.orders.save(order)
            return JobResult.failure(e.message, max_retries=0)
        except DeclineError as e:
            decision = await self.coordinator.handle_decline(order, e, retry_count)
            if decision.should_retry:
                return JobResult.failure(
                    e.reason,
                    max_retries=decision.max_retries,
                    retry_delay=decision.delay_seconds,
                )
            return JobResult.success(DUNNING_COMPLETE_MESSAGE)

        logger.info("Recurring order closed", order_id=order.order_id)
        return JobResult.success(
            order_id=order.order_id,
            payment_id=payment.payment_id if payment else None,
        )


class RenewRecurringOrderJob:
    """Renews a recurring order into the next billing period."""

    job_type = "recurring_order_renew"

    def __init__(self, manager: RecurringOrderManager) -> None:
        self.manager = manager

    async def process(self, payload: dict[str, Any], retry_count: int = 0) -> JobResult:
        try:
            order = await _load_order(self.manager, payload)
        except OrderNotFoundError:
            logger.warning("Renew job order not found", order_id=payload.get("order_id"))
            return JobResult.failure(ORDER_NOT_FOUND_MESSAGE, max_retries=0)

        next_order = await self.manager.renew_order(order)
        if next_order is None:
            return JobResult.success(
                "No renewal, no active subscriptions.", order_id=order.order_id
            )
        return JobResult.success(order_id=order.order_id, next_order_id=next_order.order_id)


__all__ = [
    "CloseRecurringOrderJob",
    "DUNNING_COMPLETE_MESSAGE",
    "JobResult",
    "JobState",
    "ORDER_NOT_FOUND_MESSAGE",
    "RenewRecurringOrderJob",
]
