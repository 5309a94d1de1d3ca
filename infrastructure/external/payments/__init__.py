"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Optional

from core.settings import payment_settings
from application.ports.payment_gateway import PaymentGateway
from infrastructure.external.payments.exceptions import PaymentValidationError


def get_payment_gateway(provider: Optional[str] = None) -> PaymentGateway:
    name = (provider or payment_settings.default_provider).lower()
    if name in {"vnpay", "vnp"}:
        from .vnpay_client import VnpayClient
        return VnpayClient()
    raise PaymentValidationError(f"Unsupported payment provider: {name}", field="provider")
