"""
Payment-related settings using pydantic-settings v2 with nested env keys.

This module is isolated so core.config.Settings stays provider-agnostic.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, SecretStr


class WebhookSettings(BaseModel):
    ip_allowlist: list[str] | None = None  # Optional IPs/CIDRs allowed to call the IPN endpoint


class VnpaySettings(BaseModel):
    tmn_code: Optional[str] = None
    hash_secret: Optional[SecretStr] = None
    payment_url: str = "https://sandbox.vnpayment.vn/paymentv2/vpcpay.html"
    return_url: Optional[str] = None
    version: str = "2.1.0"
    command: str = "pay"
    currency: str = "VND"
    locale: str = "vn"
    order_type: str = "other"
    timezone: str = "Asia/Ho_Chi_Minh"
    # vnp_ExpireDate offset; None leaves the field out of the request
    expire_minutes: Optional[int] = Field(default=15, ge=0)


class PaymentSettings(BaseSettings):
    default_provider: str = Field(default="vnpay", validation_alias="PAYMENT__DEFAULT_PROVIDER")
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)

    vnpay: VnpaySettings = Field(default_factory=VnpaySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
