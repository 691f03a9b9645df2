"""
Billing module.

Provides:
- Money handling and currency precision
- Billing configuration
- Billing exceptions with error codes and recovery hints
- Recurring billing event helpers
- Recurring orders (see ``recurring_billing.billing.recurring``)
"""

from recurring_billing.billing.exceptions import (
    BillingConfigurationError,
    BillingError,
    BillingScheduleNotFoundError,
    DeclineError,
    EntityNotFoundError,
    HardDeclineError,
    InvalidTransitionError,
    OrderNotFoundError,
    OrderStateError,
    PaymentError,
    PaymentMethodNotFoundError,
    SoftDeclineError,
    SubscriptionNotFoundError,
    WorkflowError,
)
from recurring_billing.billing.money_models import MoneyField

__all__ = [
    # Exceptions
    "BillingError",
    "BillingConfigurationError",
    "EntityNotFoundError",
    "OrderNotFoundError",
    "SubscriptionNotFoundError",
    "BillingScheduleNotFoundError",
    "PaymentError",
    "PaymentMethodNotFoundError",
    "DeclineError",
    "SoftDeclineError",
    "HardDeclineError",
    "WorkflowError",
    "InvalidTransitionError",
    "OrderStateError",
    # Money
    "MoneyField",
]
