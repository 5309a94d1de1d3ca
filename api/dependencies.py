"""
API依赖项 - 支付服务装配
"""
from functools import lru_cache

from application.ports.payment_gateway import PaymentGateway
from application.services.payment_service import PaymentService
from infrastructure.external.payments import get_payment_gateway
from infrastructure.repositories.payment_repository import get_payment_repository


@lru_cache(maxsize=1)
def get_vnpay_gateway() -> PaymentGateway:
    """网关配置在进程内只加载一次，之后只读共享"""
    return get_payment_gateway("vnpay")


async def get_vnpay_service() -> PaymentService:
    return PaymentService(
        gateway=get_vnpay_gateway(),
        repository=get_payment_repository(),
    )
