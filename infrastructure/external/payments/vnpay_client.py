"""
VNPay adapter: signed redirect URLs for payment initiation and
verification of return-URL / IPN callbacks.

Request signing follows VNPay API 2.1.0: the canonical query string of all
``vnp_*`` parameters is signed with HMAC-SHA512 using the merchant hash
secret and appended as ``vnp_SecureHash``. Callbacks are verified the same
way over every ``vnp_*`` field except the hash fields themselves.
"""
from __future__ import annotations

import re
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Mapping, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from application.dtos.payments import (
    CallbackEnvelope,
    CallbackRejectReason,
    CreatePayment,
    PaymentIntent,
    PaymentResult,
    VerificationOutcome,
)
from core.settings import VnpaySettings, payment_settings
from infrastructure.external.payments import canonical, signing
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.canonical import SIGNATURE_FIELD, ParameterSet
from infrastructure.external.payments.exceptions import (
    PaymentConfigurationError,
    PaymentValidationError,
)
from shared.codes.payment_codes import VNPAY_RESPONSE_MESSAGES


PARAM_PREFIX = "vnp_"
SIGNATURE_TYPE_FIELD = "vnp_SecureHashType"
AMOUNT_SCALE = 100
DATE_FORMAT = "%Y%m%d%H%M%S"
DEFAULT_CLIENT_IP = "127.0.0.1"

_DIGITS = re.compile(r"[0-9]+")


class VnpayGatewayConfig(BaseModel):
    """Immutable snapshot of merchant configuration."""

    tmn_code: Optional[str] = None
    hash_secret: Optional[SecretStr] = None
    payment_url: Optional[str] = None
    return_url: Optional[str] = None
    version: str = "2.1.0"
    command: str = "pay"
    currency: str = "VND"
    locale: str = "vn"
    order_type: str = "other"
    timezone: str = "Asia/Ho_Chi_Minh"
    expire_minutes: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_settings(cls, settings: Optional[VnpaySettings] = None) -> "VnpayGatewayConfig":
        s = settings or payment_settings.vnpay
        return cls(**s.model_dump())

    def missing(self, *names: str) -> list[str]:
        out = []
        for name in names:
            value = getattr(self, name)
            if isinstance(value, SecretStr):
                value = value.get_secret_value()
            if not value or not str(value).strip():
                out.append(name)
        return out

    def require(self, *names: str) -> None:
        absent = self.missing(*names)
        if absent:
            raise PaymentConfigurationError(provider="vnpay", missing=absent)

    @property
    def secret(self) -> str:
        self.require("hash_secret")
        return self.hash_secret.get_secret_value()  # type: ignore[union-attr]


class VnpayClient(BasePaymentClient):
    provider = "vnpay"

    def __init__(
        self,
        config: Optional[VnpayGatewayConfig] = None,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or VnpayGatewayConfig.from_settings()
        self._tz = ZoneInfo(self.config.timezone)
        self._clock = clock

    def _now(self) -> datetime:
        if self._clock is None:
            return datetime.now(self._tz)
        now = self._clock()
        return now.astimezone(self._tz) if now.tzinfo else now

    @staticmethod
    def _to_minor_units(amount: int) -> str:
        return str(amount * AMOUNT_SCALE)

    # Outbound

    def _validate_intent(self, req: CreatePayment) -> None:
        if req.amount is None or req.amount <= 0:
            raise PaymentValidationError(
                "Amount must be greater than zero", field="amount", message_key="payments.amount.invalid"
            )
        if not req.order_id or not req.order_id.strip():
            raise PaymentValidationError(
                "Order reference is required", field="order_id", message_key="payments.order_id.missing"
            )

    def build_parameters(self, req: CreatePayment, client_ip: Optional[str] = None) -> ParameterSet:
        cfg = self.config
        created = self._now()
        params = ParameterSet()
        params.add("vnp_Version", cfg.version)
        params.add("vnp_Command", cfg.command)
        params.add("vnp_TmnCode", cfg.tmn_code)
        params.add("vnp_Amount", self._to_minor_units(req.amount))
        params.add("vnp_BankCode", req.bank_code)
        params.add("vnp_CreateDate", created.strftime(DATE_FORMAT))
        params.add("vnp_CurrCode", cfg.currency)
        params.add("vnp_IpAddr", client_ip or DEFAULT_CLIENT_IP)
        params.add("vnp_Locale", req.locale or cfg.locale)
        params.add("vnp_OrderInfo", req.order_info or f"Thanh toan don hang {req.order_id}")
        params.add("vnp_OrderType", cfg.order_type)
        params.add("vnp_ReturnUrl", cfg.return_url)
        params.add("vnp_TxnRef", req.order_id)
        if cfg.expire_minutes:
            expires = created + timedelta(minutes=cfg.expire_minutes)
            params.add("vnp_ExpireDate", expires.strftime(DATE_FORMAT))
        return params

    def create_payment(self, req: CreatePayment, client_ip: Optional[str] = None) -> PaymentIntent:  # type: ignore[override]
        self.config.require("tmn_code", "hash_secret", "payment_url", "return_url")
        self._validate_intent(req)

        params = self.build_parameters(req, client_ip)
        payload = canonical.encode_parameters(params.freeze())
        signature = signing.sign(payload, self.config.secret)
        url = f"{self.config.payment_url}?{canonical.build_signed_query(payload, signature)}"

        self._log(
            "vnpay_payment_url_created",
            order_id=req.order_id,
            amount=req.amount,
            bank_code=req.bank_code,
        )
        return PaymentIntent(
            order_id=req.order_id,
            provider=self.provider,
            amount=req.amount,
            currency=self.config.currency,
            status="pending",
            payment_url=url,
        )

    # Inbound

    @staticmethod
    def parse_envelope(query: Mapping[str, str]) -> CallbackEnvelope:
        fields = {
            k: v
            for k, v in query.items()
            if k and k.startswith(PARAM_PREFIX) and k not in (SIGNATURE_FIELD, SIGNATURE_TYPE_FIELD)
        }
        return CallbackEnvelope(fields=fields, secure_hash=query.get(SIGNATURE_FIELD))

    def verify_callback(self, query: Mapping[str, str]) -> VerificationOutcome:  # type: ignore[override]
        secret = self.config.secret
        envelope = self.parse_envelope(query)
        order_id = envelope.fields.get("vnp_TxnRef")

        if not envelope.secure_hash or not envelope.secure_hash.strip():
            self._warn("vnpay_callback_rejected", reason=CallbackRejectReason.MISSING_SIGNATURE.value, order_id=order_id)
            return VerificationOutcome.rejected(CallbackRejectReason.MISSING_SIGNATURE)

        params = ParameterSet(envelope.fields).freeze()
        if not params:
            self._warn("vnpay_callback_rejected", reason="empty_payload")
            return VerificationOutcome.rejected(CallbackRejectReason.SIGNATURE_MISMATCH)

        payload = canonical.encode_parameters(params)
        if not signing.verify(payload, secret, envelope.secure_hash):
            self._warn("vnpay_callback_rejected", reason=CallbackRejectReason.SIGNATURE_MISMATCH.value, order_id=order_id)
            return VerificationOutcome.rejected(CallbackRejectReason.SIGNATURE_MISMATCH)

        raw_amount = params.get("vnp_Amount", "")
        if not _DIGITS.fullmatch(raw_amount):
            # Signed by the provider, so this is a provider defect rather than tampering
            self._warn("vnpay_callback_malformed", order_id=order_id, field="vnp_Amount")
            return VerificationOutcome.rejected(CallbackRejectReason.MALFORMED_AMOUNT)

        result = self._normalize(params, Decimal(int(raw_amount)) / AMOUNT_SCALE)
        self._log(
            "vnpay_callback_verified",
            order_id=result.order_id,
            response_code=result.response_code,
            transaction_status=result.transaction_status,
            status=result.status,
        )
        return VerificationOutcome.accepted(result)

    def _resolve_status(self, response_code: str, transaction_status: str) -> str:
        if response_code == "24":
            return "canceled"
        if response_code == "07":
            return "suspected_fraud"
        if response_code != "00":
            return "failed"
        return self._map_status(transaction_status or "00")

    def _normalize(self, params: Mapping[str, str], amount: Decimal) -> PaymentResult:
        response_code = params.get("vnp_ResponseCode", "")
        transaction_status = params.get("vnp_TransactionStatus", "")
        return PaymentResult(
            order_id=params.get("vnp_TxnRef", ""),
            response_code=response_code,
            transaction_status=transaction_status,
            amount=amount,
            transaction_no=params.get("vnp_TransactionNo"),
            bank_code=params.get("vnp_BankCode"),
            pay_date=params.get("vnp_PayDate"),
            status=self._resolve_status(response_code, transaction_status),
            message=VNPAY_RESPONSE_MESSAGES.get(response_code),
        )
