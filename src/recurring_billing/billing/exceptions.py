"""
Recurring billing exceptions.

Custom exceptions for billing operations with clear error messages.
Provides error codes, status codes, context, and recovery hints so job
handlers and callers can tell terminal failures from retryable ones.
"""

from typing import Any


class BillingError(Exception):
    """
    Base billing system error with enhanced context.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        status_code: HTTP-style status code for this error type
        context: Additional context data about the error
        recovery_hint: Suggested action to resolve the error
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 400,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        self.message = message
        self.error_code = error_code or "BILLING_ERROR"
        self.status_code = status_code
        self.context = context or {}
        self.recovery_hint = recovery_hint
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for job results and logs."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context,
            "recovery_hint": self.recovery_hint,
        }


class BillingConfigurationError(BillingError):
    """Billing configuration error."""

    def __init__(self, message: str, config_key: str | None = None) -> None:
        context = {}
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message,
            "CONFIGURATION_ERROR",
            status_code=500,
            context=context,
            recovery_hint="Check the billing schedule and subscription type configuration",
        )


# ============================================================================
# Not found errors
# ============================================================================


class EntityNotFoundError(BillingError):
    """Base class for entities that could not be loaded."""

    def __init__(
        self,
        message: str,
        error_code: str,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        super().__init__(
            message, error_code, status_code=404, context=context, recovery_hint=recovery_hint
        )


class OrderNotFoundError(EntityNotFoundError):
    """Recurring order not found error."""

    def __init__(self, message: str, order_id: str | None = None) -> None:
        context = {}
        if order_id:
            context["order_id"] = order_id

        super().__init__(
            message,
            "ORDER_NOT_FOUND",
            context=context,
            recovery_hint="Verify the order ID; the order may have been deleted",
        )


class SubscriptionNotFoundError(EntityNotFoundError):
    """Subscription not found error."""

    def __init__(self, message: str, subscription_id: str | None = None) -> None:
        context = {}
        if subscription_id:
            context["subscription_id"] = subscription_id

        super().__init__(
            message,
            "SUBSCRIPTION_NOT_FOUND",
            context=context,
            recovery_hint="Verify the subscription ID and ensure it exists",
        )


class BillingScheduleNotFoundError(EntityNotFoundError):
    """Billing schedule not found error."""

    def __init__(self, message: str, billing_schedule_id: str | None = None) -> None:
        context = {}
        if billing_schedule_id:
            context["billing_schedule_id"] = billing_schedule_id

        super().__init__(
            message,
            "BILLING_SCHEDULE_NOT_FOUND",
            context=context,
            recovery_hint="Verify the billing schedule exists and is enabled",
        )


# ============================================================================
# Payment errors
# ============================================================================


class PaymentError(BillingError):
    """Payment processing errors."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        super().__init__(
            message, "PAYMENT_ERROR", status_code=402, context=context, recovery_hint=recovery_hint
        )


class PaymentMethodNotFoundError(PaymentError):
    """The order has no payment method that can be charged.

    Terminal: retrying without a payment method cannot succeed.
    """

    def __init__(self, message: str = "Payment method not found.", order_id: str | None = None):
        context = {}
        if order_id:
            context["order_id"] = order_id

        super().__init__(
            message,
            context=context,
            recovery_hint="Ask the customer to add a payment method to their subscription",
        )
        self.error_code = "PAYMENT_METHOD_NOT_FOUND"


class DeclineError(PaymentError):
    """The payment gateway declined the charge.

    Both soft and hard declines are retried on the billing schedule's
    dunning schedule.
    """

    is_hard: bool = False

    def __init__(
        self,
        message: str,
        order_id: str | None = None,
        decline_code: str | None = None,
    ):
        context: dict[str, Any] = {"is_hard": self.is_hard}
        if order_id:
            context["order_id"] = order_id
        if decline_code:
            context["decline_code"] = decline_code

        super().__init__(
            message,
            context=context,
            recovery_hint="The charge will be retried according to the dunning schedule",
        )
        self.decline_code = decline_code
        self.error_code = "PAYMENT_DECLINED"

    @property
    def reason(self) -> str:
        return self.message


class SoftDeclineError(DeclineError):
    """Temporary decline, e.g. insufficient funds."""

    is_hard = False


class HardDeclineError(DeclineError):
    """Seemingly permanent decline, e.g. an expired card."""

    is_hard = True


# ============================================================================
# Workflow errors
# ============================================================================


class WorkflowError(BillingError):
    """State machine errors."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        super().__init__(
            message, "WORKFLOW_ERROR", status_code=409, context=context, recovery_hint=recovery_hint
        )


class InvalidTransitionError(WorkflowError):
    """A transition was requested that the workflow does not allow."""

    def __init__(
        self,
        message: str,
        workflow: str,
        current_state: str,
        transition: str,
    ) -> None:
        super().__init__(
            message,
            context={
                "workflow": workflow,
                "current_state": current_state,
                "transition": transition,
            },
            recovery_hint=(
                f"Transition '{transition}' is not allowed from state '{current_state}'. "
                "Check the entity state before applying transitions."
            ),
        )
        self.error_code = "INVALID_TRANSITION"


class OrderStateError(WorkflowError):
    """Operation requires the order to be in a different state."""

    def __init__(self, message: str, order_id: str, current_state: str, required_state: str):
        super().__init__(
            message,
            context={
                "order_id": order_id,
                "current_state": current_state,
                "required_state": required_state,
            },
            recovery_hint=f"Only {required_state} orders can be processed by this operation",
        )
        self.error_code = "INVALID_ORDER_STATE"


__all__ = [
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
]
