import asyncio
from decimal import Decimal

import pytest

from application.dtos.payments import CreatePayment
from application.services.payment_service import PaymentService
from domain.payment.entity import PaymentStatus
from domain.payment.service import PaymentAlreadySettledException


@pytest.fixture
def service(vnpay_client, repository) -> PaymentService:
    return PaymentService(gateway=vnpay_client, repository=repository)


@pytest.mark.asyncio
async def test_create_payment_registers_pending_record(service, repository):
    intent = await service.create_payment(CreatePayment(order_id="ORD-001", amount=150000), client_ip="10.0.0.7")

    stored = await repository.get_by_order_id("ORD-001")
    assert intent.payment_url
    assert stored is not None
    assert stored.status is PaymentStatus.PENDING
    assert stored.amount == Decimal("150000")
    assert stored.currency == "VND"


@pytest.mark.asyncio
async def test_reissuing_url_for_pending_order_updates_amount(service, repository):
    await service.create_payment(CreatePayment(order_id="ORD-001", amount=100000))
    await service.create_payment(CreatePayment(order_id="ORD-001", amount=150000))
    assert (await repository.get_by_order_id("ORD-001")).amount == Decimal("150000")


@pytest.mark.asyncio
async def test_ipn_settles_once_then_reports_already_confirmed(service, repository, callback_fields, signed_callback):
    await service.create_payment(CreatePayment(order_id="ORD-001", amount=150000))
    query = signed_callback(callback_fields())

    first = await service.handle_ipn(query)
    second = await service.handle_ipn(query)

    assert first.RspCode == "00"
    assert second.RspCode == "02"
    stored = await repository.get_by_order_id("ORD-001")
    assert stored.status is PaymentStatus.SUCCEEDED
    assert stored.provider_ref == "14226112"
    assert stored.paid_at is not None


@pytest.mark.asyncio
async def test_concurrent_ipn_deliveries_settle_exactly_once(service, callback_fields, signed_callback):
    await service.create_payment(CreatePayment(order_id="ORD-001", amount=150000))
    query = signed_callback(callback_fields())

    acks = await asyncio.gather(*(service.handle_ipn(query) for _ in range(5)))

    codes = sorted(a.RspCode for a in acks)
    assert codes == ["00", "02", "02", "02", "02"]


@pytest.mark.asyncio
async def test_ipn_for_unknown_order(service, callback_fields, signed_callback):
    ack = await service.handle_ipn(signed_callback(callback_fields(vnp_TxnRef="ORD-404")))
    assert ack.RspCode == "01"
    assert ack.Message == "Order not found"


@pytest.mark.asyncio
async def test_ipn_amount_mismatch(service, repository, callback_fields, signed_callback):
    await service.create_payment(CreatePayment(order_id="ORD-001", amount=100000))
    ack = await service.handle_ipn(signed_callback(callback_fields()))
    assert ack.RspCode == "04"
    assert (await repository.get_by_order_id("ORD-001")).status is PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_ipn_with_bad_signature_changes_nothing(service, repository, callback_fields, signed_callback):
    await service.create_payment(CreatePayment(order_id="ORD-001", amount=150000))
    query = signed_callback(callback_fields(), secret="not-the-merchant-secret")

    ack = await service.handle_ipn(query)

    assert ack.RspCode == "97"
    assert (await repository.get_by_order_id("ORD-001")).status is PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_ipn_without_signature_is_rejected(service, callback_fields):
    assert (await service.handle_ipn(callback_fields())).RspCode == "97"


@pytest.mark.asyncio
async def test_ipn_with_malformed_amount(service, callback_fields, signed_callback):
    ack = await service.handle_ipn(signed_callback(callback_fields(vnp_Amount="abc")))
    assert ack.RspCode == "04"


@pytest.mark.asyncio
async def test_failed_response_code_marks_payment_failed(service, repository, callback_fields, signed_callback):
    await service.create_payment(CreatePayment(order_id="ORD-001", amount=150000))
    query = signed_callback(callback_fields(vnp_ResponseCode="24", vnp_TransactionStatus="02"))

    ack = await service.handle_ipn(query)

    assert ack.RspCode == "00"
    stored = await repository.get_by_order_id("ORD-001")
    assert stored.status is PaymentStatus.FAILED
    assert stored.failure_reason


@pytest.mark.asyncio
async def test_settled_order_cannot_be_reissued(service, callback_fields, signed_callback):
    await service.create_payment(CreatePayment(order_id="ORD-001", amount=150000))
    await service.handle_ipn(signed_callback(callback_fields()))

    with pytest.raises(PaymentAlreadySettledException):
        await service.create_payment(CreatePayment(order_id="ORD-001", amount=150000))


def test_return_handler_only_verifies(service, callback_fields, signed_callback):
    outcome = service.handle_return(signed_callback(callback_fields()))
    assert outcome.valid
    assert outcome.result.order_id == "ORD-001"


@pytest.mark.asyncio
async def test_pending_ipn_keeps_order_open_for_final_outcome(service, repository, callback_fields, signed_callback):
    await service.create_payment(CreatePayment(order_id="ORD-001", amount=150000))

    interim = await service.handle_ipn(signed_callback(callback_fields(vnp_TransactionStatus="01")))
    assert interim.RspCode == "00"
    assert (await repository.get_by_order_id("ORD-001")).status is PaymentStatus.PENDING

    final = await service.handle_ipn(signed_callback(callback_fields()))
    assert final.RspCode == "00"
    stored = await repository.get_by_order_id("ORD-001")
    assert stored.status is PaymentStatus.SUCCEEDED
    assert stored.provider_ref == "14226112"


@pytest.mark.asyncio
async def test_suspected_fraud_ipn_is_held_pending(service, repository, callback_fields, signed_callback):
    await service.create_payment(CreatePayment(order_id="ORD-001", amount=150000))
    query = signed_callback(callback_fields(vnp_ResponseCode="07", vnp_TransactionStatus="07"))

    ack = await service.handle_ipn(query)

    assert ack.RspCode == "00"
    stored = await repository.get_by_order_id("ORD-001")
    assert stored.status is PaymentStatus.PENDING
    assert stored.failure_reason is None


@pytest.mark.asyncio
async def test_order_locks_are_released_after_use(service, repository, callback_fields, signed_callback):
    await service.create_payment(CreatePayment(order_id="ORD-001", amount=150000))
    query = signed_callback(callback_fields())
    await asyncio.gather(*(service.handle_ipn(query) for _ in range(3)))
    await service.handle_ipn(signed_callback(callback_fields(vnp_TxnRef="ORD-404")))

    assert repository._locks == {}
    assert repository._lock_users == {}
