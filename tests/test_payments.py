"""Tests for PaymentProcessor and the demo gateways."""
from decimal import Decimal

import pytest

from retail_demo.errors import InvalidTransition, PaymentFailed
from retail_demo.models import Payment, PaymentStatus, PaymentType
from retail_demo.payments import DecliningGateway, PaymentProcessor, ScriptedGateway, StripeGateway


class ExplodingGateway:
    def process(self, payment):
        raise ConnectionError("gateway timeout")


def _payment(amount: str = "10.00") -> Payment:
    return Payment(PaymentType.CARD, Decimal(amount))


def test_new_payment_is_pending():
    payment = _payment()
    assert payment.status is PaymentStatus.PENDING
    assert payment.id
    assert payment.timestamp.tzinfo is not None


def test_approved_payment_completes():
    payment = _payment()
    PaymentProcessor(StripeGateway()).process(payment)
    assert payment.status is PaymentStatus.COMPLETED


def test_declined_payment_fails_and_raises():
    payment = _payment()
    with pytest.raises(PaymentFailed):
        PaymentProcessor(DecliningGateway()).process(payment)
    assert payment.status is PaymentStatus.FAILED


def test_gateway_error_is_treated_as_decline():
    payment = _payment()
    with pytest.raises(PaymentFailed) as exc_info:
        PaymentProcessor(ExplodingGateway()).process(payment)
    assert payment.status is PaymentStatus.FAILED
    assert isinstance(exc_info.value.__cause__, ConnectionError)


def test_processor_does_not_retry():
    gateway = ScriptedGateway([False, True])
    with pytest.raises(PaymentFailed):
        PaymentProcessor(gateway).process(_payment())
    assert len(gateway.seen) == 1


def test_settled_payment_cannot_be_processed_again():
    payment = _payment()
    PaymentProcessor(StripeGateway()).process(payment)
    with pytest.raises(InvalidTransition):
        PaymentProcessor(StripeGateway()).process(payment)


def test_refund_only_from_completed():
    payment = _payment()
    with pytest.raises(InvalidTransition):
        payment.refund()

    PaymentProcessor(StripeGateway()).process(payment)
    payment.refund()
    assert payment.status is PaymentStatus.REFUNDED
