"""
支付领域服务 - 将已验签的回调结果应用到本地待支付记录
"""
from decimal import Decimal
from typing import Optional

from .entity import Payment, PaymentStatus
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


# 回调结果中视为最终失败的状态
FINAL_FAILURE_STATUSES = frozenset({"failed", "canceled"})


class PaymentNotFoundException(BusinessException):
    """支付记录不存在"""
    def __init__(self, order_id: str):
        super().__init__(
            code=PaymentCode.PAYMENT_NOT_FOUND,
            message=f"Payment for order {order_id} not found",
            error_type="PaymentNotFound",
            details={"order_id": order_id},
            message_key="payments.order.not_found",
            format_params={"order_id": order_id},
        )


class PaymentAlreadySettledException(BusinessException):
    """支付已处于终态"""
    def __init__(self, order_id: str, status: PaymentStatus):
        super().__init__(
            code=PaymentCode.PAYMENT_ALREADY_SETTLED,
            message=f"Payment for order {order_id} already settled",
            error_type="PaymentAlreadySettled",
            details={"order_id": order_id, "status": status.value},
            message_key="payments.order.settled",
            format_params={"order_id": order_id},
        )


class PaymentAmountMismatchException(BusinessException):
    """回调金额与登记金额不一致"""
    def __init__(self, order_id: str, expected: Decimal, received: Decimal):
        super().__init__(
            code=PaymentCode.PROVIDER_ERROR,
            message="Callback amount does not match the pending payment",
            error_type="PaymentAmountMismatch",
            details={"order_id": order_id, "expected": str(expected), "received": str(received)},
        )


class PaymentDomainService:
    """支付领域服务"""

    @staticmethod
    def settle(
        payment: Optional[Payment],
        *,
        order_id: str,
        amount: Decimal,
        status: str,
        provider_ref: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> Payment:
        """
        校验回调并执行一次性状态转换

        顺序：存在性 -> 金额 -> 终态（与 VNPay IPN 应答码优先级一致）。
        只有最终结果（succeeded / failed / canceled）才转换状态；
        pending 与 suspected_fraud 保持待支付，等待后续通知或人工核查。
        """
        if payment is None:
            raise PaymentNotFoundException(order_id)
        if payment.amount != amount:
            raise PaymentAmountMismatchException(order_id, payment.amount, amount)
        if payment.status.is_terminal:
            raise PaymentAlreadySettledException(order_id, payment.status)
        if status == "succeeded":
            payment.mark_succeeded(provider_ref=provider_ref)
        elif status in FINAL_FAILURE_STATUSES:
            payment.mark_failed(reason=failure_reason, provider_ref=provider_ref)
        return payment
