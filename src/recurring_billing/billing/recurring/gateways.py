"""Payment gateway contract used when closing recurring orders."""

from collections import deque
from typing import Protocol, runtime_checkable
from uuid import uuid4

import structlog

from recurring_billing.billing.exceptions import DeclineError
from recurring_billing.billing.recurring.models import Payment, PaymentMethod, RecurringOrder

logger = structlog.get_logger(__name__)


@runtime_checkable
class PaymentGateway(Protocol):
    """Captures the full order total against a stored payment method."""

    async def capture(self, order: RecurringOrder, payment_method: PaymentMethod) -> Payment:
        """
        Charge the order total.

        Raises:
            SoftDeclineError: Temporary decline
            HardDeclineError: Permanent decline
        """
        ...


class InMemoryPaymentGateway:
    """
    Gateway that approves every capture unless a decline has been queued.

    Queued declines are raised by subsequent captures in FIFO order.
    """

    def __init__(self, gateway_id: str = "manual") -> None:
        self.gateway_id = gateway_id
        self.captures: list[Payment] = []
        self.attempts = 0
        self._declines: deque[DeclineError] = deque()

    def queue_decline(self, error: DeclineError) -> None:
        self._declines.append(error)

    async def capture(self, order: RecurringOrder, payment_method: PaymentMethod) -> Payment:
        self.attempts += 1
        if self._declines:
            error = self._declines.popleft()
            logger.info(
                "Capture declined",
                order_id=order.order_id,
                payment_method_id=payment_method.payment_method_id,
                is_hard=error.is_hard,
            )
            raise error

        payment = Payment(
            order_id=order.order_id,
            payment_gateway_id=payment_method.payment_gateway_id or self.gateway_id,
            payment_method_id=payment_method.payment_method_id,
            amount=order.total_price,
            remote_id=uuid4().hex,
        )
        self.captures.append(payment)
        return payment


__all__ = ["InMemoryPaymentGateway", "PaymentGateway"]
