"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CreatePayment(BaseModel):
    order_id: str
    amount: int = Field(description="Amount in major units (VND)")
    order_info: Optional[str] = None
    bank_code: Optional[str] = None
    locale: Optional[Literal["vn", "en"]] = None
    provider: Optional[str] = None

    @field_validator("order_id")
    @classmethod
    def _strip_order_id(cls, v: str) -> str:
        return v.strip()

    @field_validator("order_info", "bank_code")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class PaymentIntent(BaseModel):
    order_id: str
    provider: str
    amount: int
    currency: str
    status: str
    payment_url: str


class CallbackEnvelope(BaseModel):
    """Provider-prefixed callback fields plus the claimed signature, verbatim."""

    fields: dict[str, str]
    secure_hash: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class CallbackRejectReason(str, Enum):
    SIGNATURE_MISMATCH = "signature_mismatch"
    MISSING_SIGNATURE = "missing_signature"
    MALFORMED_AMOUNT = "malformed_amount"


class PaymentResult(BaseModel):
    order_id: str
    response_code: str
    transaction_status: str
    amount: Decimal
    transaction_no: Optional[str] = None
    bank_code: Optional[str] = None
    pay_date: Optional[str] = None
    status: str
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


class VerificationOutcome(BaseModel):
    """Tagged result of callback verification: exactly one of result/reason is set."""

    valid: bool
    result: Optional[PaymentResult] = None
    reason: Optional[CallbackRejectReason] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_tag(self):
        if self.valid and (self.result is None or self.reason is not None):
            raise ValueError("valid outcome requires a result and no reason")
        if not self.valid and (self.reason is None or self.result is not None):
            raise ValueError("invalid outcome requires a reason and no result")
        return self

    @classmethod
    def accepted(cls, result: PaymentResult) -> "VerificationOutcome":
        return cls(valid=True, result=result)

    @classmethod
    def rejected(cls, reason: CallbackRejectReason) -> "VerificationOutcome":
        return cls(valid=False, reason=reason)


class IpnAck(BaseModel):
    """Acknowledgement body VNPay expects from the IPN endpoint."""

    RspCode: str
    Message: str
