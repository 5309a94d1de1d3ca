"""
Application service orchestrating payment use-cases.

This class depends only on the application PaymentGateway port, the payment
repository interface and DTOs. Gateway and repository implementations are
provided by infrastructure and injected from the composition root (API),
keeping dependencies one-way.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Mapping, Optional

from application.dtos.payments import (
    CallbackRejectReason,
    CreatePayment,
    IpnAck,
    PaymentIntent,
    VerificationOutcome,
)
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from domain.payment.entity import Payment, PaymentStatus
from domain.payment.repository import PaymentRepository
from domain.payment.service import (
    PaymentAlreadySettledException,
    PaymentAmountMismatchException,
    PaymentDomainService,
    PaymentNotFoundException,
)
from shared.codes.payment_codes import IpnResponseCode


logger = get_logger(__name__)

IPN_MESSAGES = {
    IpnResponseCode.CONFIRM_SUCCESS: "Confirm Success",
    IpnResponseCode.ORDER_NOT_FOUND: "Order not found",
    IpnResponseCode.ORDER_ALREADY_CONFIRMED: "Order already confirmed",
    IpnResponseCode.INVALID_AMOUNT: "Invalid amount",
    IpnResponseCode.INVALID_SIGNATURE: "Invalid signature",
    IpnResponseCode.UNKNOWN_ERROR: "Unknown error",
}


def _ack(code: str) -> IpnAck:
    return IpnAck(RspCode=code, Message=IPN_MESSAGES[code])


class PaymentService:
    def __init__(self, gateway: PaymentGateway, repository: PaymentRepository) -> None:
        self.gateway = gateway
        self.repository = repository

    async def create_payment(self, req: CreatePayment, client_ip: Optional[str] = None) -> PaymentIntent:
        logger.info(
            "payment_create_request",
            order_id=req.order_id,
            provider=req.provider or self.gateway.provider,
            amount=req.amount,
        )
        intent = self.gateway.create_payment(req, client_ip)
        await self._register_pending(intent)
        logger.info(
            "payment_create_response",
            order_id=intent.order_id,
            provider=intent.provider,
            status=intent.status,
        )
        return intent

    async def _register_pending(self, intent: PaymentIntent) -> None:
        amount = Decimal(intent.amount)
        async with self.repository.locked(intent.order_id):
            existing = await self.repository.get_by_order_id(intent.order_id)
            if existing is None:
                await self.repository.create(
                    Payment(
                        order_id=intent.order_id,
                        provider=intent.provider,
                        amount=amount,
                        currency=intent.currency,
                    )
                )
                return
            if existing.status.is_terminal:
                raise PaymentAlreadySettledException(intent.order_id, existing.status)
            if existing.amount != amount:
                # Latest issued URL defines the expected amount
                existing.amount = amount
                await self.repository.update(existing)

    def handle_return(self, query: Mapping[str, str]) -> VerificationOutcome:
        """Verify the browser return redirect. No state change happens here."""
        outcome = self.gateway.verify_callback(query)
        logger.info(
            "payment_return_handled",
            provider=self.gateway.provider,
            valid=outcome.valid,
            reason=outcome.reason.value if outcome.reason else None,
        )
        return outcome

    async def handle_ipn(self, query: Mapping[str, str]) -> IpnAck:
        """Verify a server-to-server notification and settle the pending record at most once."""
        try:
            outcome = self.gateway.verify_callback(query)
            result = outcome.result
            if not outcome.valid or result is None:
                if outcome.reason is CallbackRejectReason.MALFORMED_AMOUNT:
                    return _ack(IpnResponseCode.INVALID_AMOUNT)
                return _ack(IpnResponseCode.INVALID_SIGNATURE)

            async with self.repository.locked(result.order_id):
                payment = await self.repository.get_by_order_id(result.order_id)
                try:
                    settled = PaymentDomainService.settle(
                        payment,
                        order_id=result.order_id,
                        amount=result.amount,
                        status=result.status,
                        provider_ref=result.transaction_no,
                        failure_reason=result.message or result.response_code,
                    )
                except PaymentNotFoundException:
                    return _ack(IpnResponseCode.ORDER_NOT_FOUND)
                except PaymentAmountMismatchException:
                    logger.warning("payment_ipn_amount_mismatch", order_id=result.order_id)
                    return _ack(IpnResponseCode.INVALID_AMOUNT)
                except PaymentAlreadySettledException:
                    return _ack(IpnResponseCode.ORDER_ALREADY_CONFIRMED)
                if settled.status is PaymentStatus.PENDING:
                    # Not a final outcome; keep the record open for the next notification
                    logger.warning(
                        "payment_ipn_not_final",
                        order_id=result.order_id,
                        result_status=result.status,
                        transaction_status=result.transaction_status,
                    )
                    return _ack(IpnResponseCode.CONFIRM_SUCCESS)
                await self.repository.update(settled)

            logger.info(
                "payment_ipn_settled",
                order_id=settled.order_id,
                status=settled.status.value,
                provider_ref=settled.provider_ref,
            )
            return _ack(IpnResponseCode.CONFIRM_SUCCESS)
        except BusinessException as exc:
            logger.error("payment_ipn_failed", error_type=exc.error_type, code=int(exc.code))
            return _ack(IpnResponseCode.UNKNOWN_ERROR)
