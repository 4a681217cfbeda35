from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Protocol

from retail_demo.errors import InvalidTransition, PaymentFailed
from retail_demo.models import Payment, PaymentStatus

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    def process(self, payment: Payment) -> bool: ...


class StripeGateway:
    """Demo gateway that approves everything."""

    def process(self, payment: Payment) -> bool:
        logger.info("Processing payment via Stripe: %s", payment.amount)
        return True


class DecliningGateway:
    def process(self, payment: Payment) -> bool:
        logger.info("Declining payment %s: %s", payment.id, payment.amount)
        return False


class ScriptedGateway:
    """Returns pre-set outcomes in order; records every payment it sees."""

    def __init__(self, outcomes: Iterable[bool]):
        self.outcomes = deque(outcomes)
        self.seen: list[Payment] = []

    def process(self, payment: Payment) -> bool:
        self.seen.append(payment)
        if not self.outcomes:
            raise RuntimeError("ScriptedGateway has no outcomes left")
        return self.outcomes.popleft()


class PaymentProcessor:
    def __init__(self, gateway: PaymentGateway):
        self.gateway = gateway

    def process(self, payment: Payment) -> None:
        """
        Settle one payment through the gateway.

        Raises PaymentFailed when the gateway declines or errors out; the
        payment is FAILED in both cases. There is no retry here.
        """
        if payment.status is not PaymentStatus.PENDING:
            raise InvalidTransition(f"Payment {payment.id} is {payment.status.value}, expected pending")

        try:
            approved = self.gateway.process(payment)
        except Exception as e:
            payment.status = PaymentStatus.FAILED
            logger.warning("Gateway error for payment %s", payment.id, exc_info=True)
            raise PaymentFailed(f"Payment {payment.id} failed: gateway error: {e}") from e

        if not approved:
            payment.status = PaymentStatus.FAILED
            raise PaymentFailed(f"Payment {payment.id} declined")
        payment.status = PaymentStatus.COMPLETED
