"""
Dunning for declined recurring payments.

The retry schedule of the order's billing schedule decides how often and
after how many days a declined order is charged again. Once the schedule is
exhausted the order fails and active subscriptions may be moved to the
schedule's unpaid state. Scheduling the retry itself is left to the job
runner.
"""

from enum import Enum

import structlog
from pydantic import BaseModel, ConfigDict, Field

from recurring_billing.billing.config import BillingConfig, get_billing_config
from recurring_billing.billing.events import (
    emit_payment_declined,
    emit_subscription_state_changed,
)
from recurring_billing.billing.exceptions import DeclineError
from recurring_billing.billing.recurring.models import (
    OrderState,
    RecurringOrder,
    SubscriptionState,
)
from recurring_billing.billing.recurring.order_manager import collect_order_subscriptions
from recurring_billing.billing.recurring.repository import (
    BillingScheduleRepository,
    OrderRepository,
    SubscriptionRepository,
)
from recurring_billing.billing.recurring.workflow import (
    Workflow,
    order_workflow as default_order_workflow,
    subscription_workflow as default_subscription_workflow,
)
from recurring_billing.events import EventBus, get_event_bus
from recurring_billing.logging import log_audit_event

logger = structlog.get_logger(__name__)


class DunningOutcome(str, Enum):
    """What the job runner should do with a declined order."""

    RETRY = "retry"
    GIVE_UP = "give_up"


class DunningDecision(BaseModel):
    """Result of handling one decline."""

    model_config = ConfigDict(validate_assignment=True)

    outcome: DunningOutcome
    delay_days: int = Field(0, ge=0, description="Days until the next attempt")
    retry_count: int = Field(ge=0, description="Retries already attempted")
    max_retries: int = Field(ge=0, description="Retries allowed by the schedule")
    cascade_failures: list[str] = Field(
        default_factory=list,
        description="Subscriptions that could not be moved to the unpaid state",
    )

    @property
    def should_retry(self) -> bool:
        return self.outcome == DunningOutcome.RETRY

    @property
    def delay_seconds(self) -> int:
        return self.delay_days * 86400


class DeclineRetryCoordinator:
    """Applies the dunning policy to declined recurring orders."""

    def __init__(
        self,
        orders: OrderRepository,
        subscriptions: SubscriptionRepository,
        billing_schedules: BillingScheduleRepository,
        event_bus: EventBus | None = None,
        order_workflow: Workflow[OrderState] | None = None,
        subscription_workflow: Workflow[SubscriptionState] | None = None,
        config: BillingConfig | None = None,
    ) -> None:
        self.orders = orders
        self.subscriptions = subscriptions
        self.billing_schedules = billing_schedules
        self.event_bus = event_bus or get_event_bus()
        self.order_workflow = order_workflow or default_order_workflow
        self.subscription_workflow = subscription_workflow or default_subscription_workflow
        self._config = config

    @property
    def config(self) -> BillingConfig:
        return self._config or get_billing_config()

    @staticmethod
    def decide(retry_schedule: list[int], retry_count: int) -> DunningDecision:
        """
        Decide between retrying and giving up.

        Args:
            retry_schedule: Days to wait before each retry
            retry_count: Retries already attempted for this order

        Returns:
            RETRY with the next delay while the schedule has entries left,
            GIVE_UP otherwise
        """
        if retry_count < 0:
            raise ValueError(f"retry_count must not be negative, got {retry_count}")

        max_retries = len(retry_schedule)
        if retry_count < max_retries:
            return DunningDecision(
                outcome=DunningOutcome.RETRY,
                delay_days=retry_schedule[retry_count],
                retry_count=retry_count,
                max_retries=max_retries,
            )
        return DunningDecision(
            outcome=DunningOutcome.GIVE_UP,
            delay_days=0,
            retry_count=retry_count,
            max_retries=max_retries,
        )

    async def handle_decline(
        self, order: RecurringOrder, error: DeclineError, retry_count: int
    ) -> DunningDecision:
        """
        Handle a declined charge for ``order``.

        On GIVE_UP the order is marked failed and, unless the schedule keeps
        unpaid subscriptions active, every linked active subscription is
        moved to the unpaid state. The order is saved before returning.
        """
        schedule = await self.billing_schedules.get(order.billing_schedule_id)
        decision = self.decide(schedule.retry_delays(), retry_count)

        logger.warning(
            "Recurring order payment declined",
            order_id=order.order_id,
            reason=error.reason,
            is_hard=error.is_hard,
            outcome=decision.outcome.value,
            retry_count=decision.retry_count,
            max_retries=decision.max_retries,
            delay_days=decision.delay_days,
        )

        if decision.outcome == DunningOutcome.GIVE_UP:
            self.order_workflow.apply_transition(order, "mark_failed")
            log_audit_event(
                "recurring_order.failed",
                resource_type="recurring_order",
                resource_id=order.order_id,
                customer_id=order.customer_id,
                retry_count=retry_count,
            )
            unpaid_state = schedule.get_unpaid_subscription_state()
            if unpaid_state != SubscriptionState.ACTIVE:
                decision.cascade_failures = await self._apply_unpaid_state(order, unpaid_state)

        if self.config.dunning.send_notifications:
            await emit_payment_declined(
                order,
                delay_days=decision.delay_days,
                retry_count=decision.retry_count,
                max_retries=decision.max_retries,
                event_bus=self.event_bus,
                reason=error.reason,
                outcome=decision.outcome.value,
            )

        await self.orders.save(order)
        return decision

    async def _apply_unpaid_state(
        self, order: RecurringOrder, unpaid_state: SubscriptionState
    ) -> list[str]:
        """Move active subscriptions to the unpaid state; returns the ones that failed."""
        try:
            subscriptions = await collect_order_subscriptions(self.subscriptions, order)
        except Exception as e:
            logger.error(
                "Failed to load subscriptions for unpaid state",
                order_id=order.order_id,
                unpaid_state=unpaid_state.value,
                error=str(e),
            )
            return list(order.subscription_ids)

        failures: list[str] = []
        for subscription in subscriptions:
            # Subscriptions canceled or already past due keep their state
            if subscription.state != SubscriptionState.ACTIVE:
                continue

            subscription_id = subscription.subscription_id
            from_state = subscription.state
            try:
                self.subscription_workflow.transition_to(subscription, unpaid_state)
                await self.subscriptions.save(subscription)
            except Exception as e:
                logger.error(
                    "Failed to apply unpaid subscription state",
                    order_id=order.order_id,
                    subscription_id=subscription_id,
                    unpaid_state=unpaid_state.value,
                    error=str(e),
                )
                failures.append(subscription_id)
                continue

            log_audit_event(
                "subscription.state_changed",
                resource_type="subscription",
                resource_id=subscription_id,
                customer_id=subscription.customer_id,
                from_state=from_state.value,
                to_state=unpaid_state.value,
            )
            await emit_subscription_state_changed(
                subscription,
                from_state=from_state.value,
                to_state=unpaid_state.value,
                event_bus=self.event_bus,
                order_id=order.order_id,
            )
        return failures


__all__ = ["DeclineRetryCoordinator", "DunningDecision", "DunningOutcome"]
