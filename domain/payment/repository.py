"""
支付仓储接口 - 定义支付数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import AsyncContextManager, Optional

from .entity import Payment


class PaymentRepository(ABC):
    """支付仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, payment: Payment) -> Payment:
        """创建支付记录"""
        pass

    @abstractmethod
    async def get_by_order_id(self, order_id: str) -> Optional[Payment]:
        """根据订单ID获取支付（一个订单一笔支付）"""
        pass

    @abstractmethod
    async def update(self, payment: Payment) -> Payment:
        """更新支付记录"""
        pass

    @abstractmethod
    def locked(self, order_id: str) -> AsyncContextManager[None]:
        """订单级互斥，保证状态转换至多执行一次"""
        pass
