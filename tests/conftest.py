"""Pytest bootstrap configuration.

Ensure merchant environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

os.environ.setdefault("VNPAY__TMN_CODE", "TESTTMN1")
os.environ.setdefault("VNPAY__HASH_SECRET", "TESTSECRETKEY0123456789")
os.environ.setdefault("VNPAY__RETURN_URL", "https://shop.example.vn/payment/return")
os.environ.setdefault("DEBUG", "true")

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from infrastructure.external.payments import canonical, signing
from infrastructure.external.payments.vnpay_client import VnpayClient, VnpayGatewayConfig
from infrastructure.repositories.payment_repository import (
    InMemoryPaymentRepository,
    reset_payment_repository,
)


TEST_SECRET = "TESTSECRETKEY0123456789"
FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=ZoneInfo("Asia/Ho_Chi_Minh"))


@pytest.fixture
def vnpay_config() -> VnpayGatewayConfig:
    return VnpayGatewayConfig(
        tmn_code="TESTTMN1",
        hash_secret=TEST_SECRET,
        payment_url="https://sandbox.vnpayment.vn/paymentv2/vpcpay.html",
        return_url="https://shop.example.vn/payment/return",
        expire_minutes=15,
    )


@pytest.fixture
def vnpay_client(vnpay_config) -> VnpayClient:
    return VnpayClient(vnpay_config, clock=lambda: FIXED_NOW)


@pytest.fixture
def repository() -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository()


@pytest.fixture(autouse=True)
def _reset_singletons():
    from api.dependencies import get_vnpay_gateway

    reset_payment_repository()
    get_vnpay_gateway.cache_clear()
    yield
    reset_payment_repository()
    get_vnpay_gateway.cache_clear()


def _callback_fields(**overrides) -> dict[str, str]:
    """A realistic VNPay return/IPN field set for order ORD-001 (150000 VND)."""
    fields = {
        "vnp_Amount": "15000000",
        "vnp_BankCode": "NCB",
        "vnp_BankTranNo": "VNP14226112",
        "vnp_CardType": "ATM",
        "vnp_OrderInfo": "Thanh toan don hang ORD-001",
        "vnp_PayDate": "20240102031010",
        "vnp_ResponseCode": "00",
        "vnp_TmnCode": "TESTTMN1",
        "vnp_TransactionNo": "14226112",
        "vnp_TransactionStatus": "00",
        "vnp_TxnRef": "ORD-001",
    }
    fields.update(overrides)
    return fields


def _signed_callback(fields: dict[str, str], secret: str = TEST_SECRET) -> dict[str, str]:
    """Sign ``fields`` the way the provider does and attach the hash parameters."""
    payload = canonical.encode_parameters(fields)
    query = dict(fields)
    query["vnp_SecureHashType"] = "HmacSHA512"
    query["vnp_SecureHash"] = signing.sign(payload, secret)
    return query


@pytest.fixture
def callback_fields():
    return _callback_fields


@pytest.fixture
def signed_callback():
    return _signed_callback
