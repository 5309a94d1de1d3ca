from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException
from domain.payment.entity import Payment, PaymentStatus
from domain.payment.service import (
    PaymentAlreadySettledException,
    PaymentAmountMismatchException,
    PaymentDomainService,
    PaymentNotFoundException,
)


def _payment(**overrides) -> Payment:
    data = {"order_id": "ORD-001", "provider": "vnpay", "amount": Decimal("150000"), "currency": "VND"}
    data.update(overrides)
    return Payment(**data)


def test_new_payment_is_pending():
    p = _payment()
    assert p.status is PaymentStatus.PENDING
    assert p.created_at is not None and p.created_at.tzinfo is not None


@pytest.mark.parametrize("overrides", [{"amount": Decimal("0")}, {"currency": "VN"}, {"currency": "12D"}])
def test_invalid_payment_is_rejected(overrides):
    with pytest.raises(DomainValidationException):
        _payment(**overrides)


def test_terminal_status_cannot_transition():
    p = _payment()
    p.mark_succeeded(provider_ref="14226112")
    with pytest.raises(DomainValidationException):
        p.mark_failed(reason="late")


def test_settle_checks_existence_then_amount_then_state():
    with pytest.raises(PaymentNotFoundException):
        PaymentDomainService.settle(None, order_id="ORD-001", amount=Decimal("1"), status="succeeded")

    settled = _payment()
    settled.mark_succeeded()
    with pytest.raises(PaymentAmountMismatchException):
        PaymentDomainService.settle(settled, order_id="ORD-001", amount=Decimal("1"), status="succeeded")
    with pytest.raises(PaymentAlreadySettledException):
        PaymentDomainService.settle(settled, order_id="ORD-001", amount=Decimal("150000"), status="succeeded")


def test_settle_marks_failure_with_reason():
    p = PaymentDomainService.settle(
        _payment(), order_id="ORD-001", amount=Decimal("150000"), status="canceled", failure_reason="24"
    )
    assert p.status is PaymentStatus.FAILED
    assert p.failure_reason == "24"


@pytest.mark.parametrize("status", ["pending", "suspected_fraud", "unknown"])
def test_settle_leaves_non_final_outcomes_pending(status):
    p = PaymentDomainService.settle(_payment(), order_id="ORD-001", amount=Decimal("150000"), status=status)
    assert p.status is PaymentStatus.PENDING
    assert p.paid_at is None
