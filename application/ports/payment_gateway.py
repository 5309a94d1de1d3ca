"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Mapping, Optional, Protocol, runtime_checkable

from application.dtos.payments import (
    CreatePayment,
    PaymentIntent,
    VerificationOutcome,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for redirect-style payment providers.

    Implementations are synchronous and side-effect free: building the
    redirect URL and checking a callback are pure computations.
    """

    provider: str

    def create_payment(self, req: CreatePayment, client_ip: Optional[str] = None) -> PaymentIntent: ...

    def verify_callback(self, query: Mapping[str, str]) -> VerificationOutcome: ...
