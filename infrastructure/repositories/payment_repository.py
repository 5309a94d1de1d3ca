"""
支付仓储实现 - 进程内存储

待支付记录只需要在发起支付与 IPN 回调之间存活；需要持久化时替换为
实现同一 PaymentRepository 接口的数据库仓储即可。
"""
from __future__ import annotations

import asyncio
import copy
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from domain.payment.entity import Payment
from domain.payment.repository import PaymentRepository
from core.logging_config import get_logger


logger = get_logger(__name__)


class InMemoryPaymentRepository(PaymentRepository):
    """支付仓储的内存实现"""

    def __init__(self) -> None:
        self._items: dict[str, Payment] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        # 持有者与等待者计数，归零时移除锁，避免按订单无限增长
        self._lock_users: dict[str, int] = {}

    async def create(self, payment: Payment) -> Payment:
        if payment.order_id in self._items:
            raise ValueError(f"payment for order {payment.order_id} already exists")
        self._items[payment.order_id] = copy.deepcopy(payment)
        logger.debug("payment_record_created", order_id=payment.order_id, provider=payment.provider)
        return payment

    async def get_by_order_id(self, order_id: str) -> Optional[Payment]:
        stored = self._items.get(order_id)
        # Hand out copies so callers mutate only through update()
        return copy.deepcopy(stored) if stored is not None else None

    async def update(self, payment: Payment) -> Payment:
        if payment.order_id not in self._items:
            raise KeyError(payment.order_id)
        self._items[payment.order_id] = copy.deepcopy(payment)
        logger.debug("payment_record_updated", order_id=payment.order_id, status=payment.status.value)
        return payment

    @asynccontextmanager
    async def locked(self, order_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(order_id, asyncio.Lock())
        self._lock_users[order_id] = self._lock_users.get(order_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[order_id] - 1
            if remaining:
                self._lock_users[order_id] = remaining
            else:
                del self._lock_users[order_id]
                del self._locks[order_id]


_repository: Optional[InMemoryPaymentRepository] = None


def get_payment_repository() -> InMemoryPaymentRepository:
    """进程级单例"""
    global _repository
    if _repository is None:
        _repository = InMemoryPaymentRepository()
    return _repository


def reset_payment_repository() -> None:
    global _repository
    _repository = None
