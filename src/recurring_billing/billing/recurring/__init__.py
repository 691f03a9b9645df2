"""
Recurring orders.

Billing periods and schedules, charge collection per subscription type,
the recurring order manager and the dunning coordinator. Celery tasks live
in ``recurring_billing.billing.recurring.tasks`` and are not imported here.
"""

from recurring_billing.billing.recurring.billing_period import BillingPeriod
from recurring_billing.billing.recurring.charge import Charge
from recurring_billing.billing.recurring.dunning import (
    DeclineRetryCoordinator,
    DunningDecision,
    DunningOutcome,
)
from recurring_billing.billing.recurring.gateways import InMemoryPaymentGateway, PaymentGateway
from recurring_billing.billing.recurring.jobs import (
    CloseRecurringOrderJob,
    JobResult,
    JobState,
    RenewRecurringOrderJob,
)
from recurring_billing.billing.recurring.models import (
    OrderItem,
    OrderKey,
    OrderState,
    Payment,
    PaymentMethod,
    PurchasedItem,
    RecurringOrder,
    Subscription,
    SubscriptionState,
)
from recurring_billing.billing.recurring.order_manager import RecurringOrderManager
from recurring_billing.billing.recurring.repository import (
    BillingScheduleRepository,
    InMemoryBillingScheduleRepository,
    InMemoryOrderRepository,
    InMemorySubscriptionRepository,
    OrderRepository,
    SubscriptionRepository,
)
from recurring_billing.billing.recurring.schedules import (
    BillingSchedule,
    BillingType,
    FixedInterval,
    Interval,
    IntervalPlugin,
    IntervalUnit,
    RollingInterval,
)
from recurring_billing.billing.recurring.subscription_types import (
    ProductVariationSubscriptionType,
    StandaloneSubscriptionType,
    SubscriptionType,
    SubscriptionTypeRegistry,
)
from recurring_billing.billing.recurring.workflow import Transition, Workflow

__all__ = [
    # Values
    "BillingPeriod",
    "Charge",
    # Entities
    "OrderItem",
    "OrderKey",
    "OrderState",
    "Payment",
    "PaymentMethod",
    "PurchasedItem",
    "RecurringOrder",
    "Subscription",
    "SubscriptionState",
    # Schedules
    "BillingSchedule",
    "BillingType",
    "FixedInterval",
    "Interval",
    "IntervalPlugin",
    "IntervalUnit",
    "RollingInterval",
    # Subscription types
    "ProductVariationSubscriptionType",
    "StandaloneSubscriptionType",
    "SubscriptionType",
    "SubscriptionTypeRegistry",
    # Workflows
    "Transition",
    "Workflow",
    # Services
    "RecurringOrderManager",
    "DeclineRetryCoordinator",
    "DunningDecision",
    "DunningOutcome",
    # Jobs
    "CloseRecurringOrderJob",
    "JobResult",
    "JobState",
    "RenewRecurringOrderJob",
    # Collaborators
    "BillingScheduleRepository",
    "InMemoryBillingScheduleRepository",
    "InMemoryOrderRepository",
    "InMemorySubscriptionRepository",
    "OrderRepository",
    "SubscriptionRepository",
    "InMemoryPaymentGateway",
    "PaymentGateway",
]
