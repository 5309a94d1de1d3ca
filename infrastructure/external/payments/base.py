"""
Base payment client implementing shared concerns: logging and status mapping.

Concrete providers should subclass and implement provider-specific logic.
"""
from __future__ import annotations

from typing import Mapping, Optional

from core.logging_config import get_logger
from application.dtos.payments import (
    CreatePayment,
    PaymentIntent,
    VerificationOutcome,
)
from application.ports.payment_gateway import PaymentGateway
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL


logger = get_logger(__name__)


class BasePaymentClient(PaymentGateway):
    provider: str = "base"

    # Default implementations raise to force override where needed
    def create_payment(self, req: CreatePayment, client_ip: Optional[str] = None) -> PaymentIntent:  # type: ignore[override]
        raise NotImplementedError

    def verify_callback(self, query: Mapping[str, str]) -> VerificationOutcome:  # type: ignore[override]
        raise NotImplementedError

    # Helpers
    def _map_status(self, provider_status: str) -> str:
        mapping = PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(provider_status, "failed" if provider_status else "unknown")

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )

    def _warn(self, event: str, **kwargs) -> None:
        logger.warning(
            event,
            provider=self.provider,
            **kwargs,
        )
