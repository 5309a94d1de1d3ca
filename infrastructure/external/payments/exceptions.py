"""
Exceptions for payment providers mapped to unified BusinessException variants.
"""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class PaymentConfigurationError(BusinessException):
    """Merchant credentials or endpoints are not configured."""

    def __init__(self, *, provider: str, missing: list[str]):
        super().__init__(
            code=PaymentCode.CONFIGURATION_ERROR,
            message="Payment provider configuration not found",
            error_type="PaymentConfigurationError",
            details={"provider": provider, "missing": missing},
            message_key="payments.config.missing",
        )


class PaymentValidationError(BusinessException):
    """Client supplied payment intent is unusable."""

    def __init__(self, message: str, *, field: str, message_key: str | None = None):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="PaymentValidationError",
            field=field,
            message_key=message_key,
        )


class PaymentSignatureError(BusinessException):
    def __init__(self, message: str, *, provider: str, missing: bool = False, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.MISSING_SIGNATURE if missing else PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="PaymentSignatureError",
            details=full_details,
            message_key="payments.signature.missing" if missing else "payments.signature.invalid",
        )


class MalformedProviderResponseError(BusinessException):
    """A signature-valid callback carried a field we cannot interpret."""

    def __init__(self, *, provider: str, field: str):
        super().__init__(
            code=PaymentCode.MALFORMED_PROVIDER_RESPONSE,
            message=f"Malformed provider response: {field}",
            error_type="MalformedProviderResponse",
            details={"provider": provider},
            field=field,
            message_key="payments.response.malformed",
            format_params={"field": field},
        )

