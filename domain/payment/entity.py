"""
支付领域实体 - 支付聚合根
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from enum import Enum

from domain.common.exceptions import DomainValidationException


class PaymentStatus(str, Enum):
    """支付状态枚举"""
    PENDING = "pending"           # 待支付
    SUCCEEDED = "succeeded"       # 支付成功
    FAILED = "failed"             # 支付失败

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class Payment:
    """
    支付聚合根 - 本地登记的待支付记录

    业务规则：
    1. 订单ID 唯一
    2. 金额必须大于0（主币单位）
    3. pending -> succeeded | failed，终态不可再转换
    """

    order_id: str
    provider: str
    amount: Decimal
    currency: str
    status: PaymentStatus = PaymentStatus.PENDING
    provider_ref: Optional[str] = None
    failure_reason: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    def __post_init__(self):
        self._validate_amount()
        self._validate_currency()
        self.created_at = _ensure_utc(self.created_at) or datetime.now(timezone.utc)
        self.updated_at = _ensure_utc(self.updated_at) or self.created_at
        self.paid_at = _ensure_utc(self.paid_at)

    def _validate_amount(self) -> None:
        """业务规则：金额必须大于0"""
        if self.amount <= 0:
            raise DomainValidationException(
                f"Payment amount must be greater than 0: {self.amount}",
                field="amount",
            )

    def _validate_currency(self) -> None:
        """业务规则：货币代码必须是3位字母"""
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(
                f"Invalid currency code: {self.currency}",
                field="currency",
            )

    def _ensure_pending(self, target: PaymentStatus) -> None:
        if self.status is not PaymentStatus.PENDING:
            raise DomainValidationException(
                f"Cannot transition from {self.status.value} to {target.value}",
                field="status",
            )

    def mark_succeeded(self, provider_ref: Optional[str] = None) -> None:
        self._ensure_pending(PaymentStatus.SUCCEEDED)
        self.status = PaymentStatus.SUCCEEDED
        if provider_ref:
            self.provider_ref = provider_ref
        self.paid_at = datetime.now(timezone.utc)
        self.updated_at = self.paid_at
        self.failure_reason = None

    def mark_failed(self, reason: Optional[str] = None, provider_ref: Optional[str] = None) -> None:
        self._ensure_pending(PaymentStatus.FAILED)
        self.status = PaymentStatus.FAILED
        if provider_ref:
            self.provider_ref = provider_ref
        self.failure_reason = reason
        self.updated_at = datetime.now(timezone.utc)
