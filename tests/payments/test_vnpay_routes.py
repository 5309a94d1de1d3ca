from urllib.parse import parse_qs, urlsplit

import pytest
import httpx
from fastapi.testclient import TestClient

from api.dependencies import get_vnpay_service
from application.services.payment_service import PaymentService
from core.settings import payment_settings
from infrastructure.external.payments import canonical, signing
from infrastructure.external.payments.vnpay_client import VnpayClient, VnpayGatewayConfig
from infrastructure.repositories.payment_repository import InMemoryPaymentRepository
from main import app


BASE = "/api/v1/payments/vnpay"
TEST_SECRET = "TESTSECRETKEY0123456789"


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def _create(client, order_id="ORD-001", amount=150000, **extra):
    return client.post(f"{BASE}/create-payment", json={"order_id": order_id, "amount": amount, **extra})


def test_create_payment_returns_signed_url(client):
    resp = _create(client)
    assert resp.status_code == 200
    body = resp.json()
    assert body["code"] == 0
    data = body["data"]
    assert data["order_id"] == "ORD-001"
    assert data["amount"] == 150000
    assert data["currency"] == "VND"
    assert data["provider"] == "vnpay"
    q = {k: v[0] for k, v in parse_qs(urlsplit(data["payment_url"]).query).items()}
    assert q["vnp_Amount"] == "15000000"
    assert q["vnp_TmnCode"] == "TESTTMN1"
    assert len(q["vnp_SecureHash"]) == 128
    assert TEST_SECRET not in resp.text


def test_create_payment_uses_forwarded_client_ip(client):
    resp = client.post(
        f"{BASE}/create-payment",
        json={"order_id": "ORD-009", "amount": 1000},
        headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
    )
    q = parse_qs(urlsplit(resp.json()["data"]["payment_url"]).query)
    assert q["vnp_IpAddr"] == ["203.0.113.9"]


def test_create_payment_rejects_zero_amount(client):
    resp = _create(client, amount=0)
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["field"] == "amount"


def test_create_payment_rejects_invalid_body(client):
    resp = client.post(f"{BASE}/create-payment", json={"order_id": "ORD-001"})
    assert resp.status_code == 422


def test_callback_with_valid_signature(client, callback_fields, signed_callback):
    resp = client.get(f"{BASE}/callback", params=signed_callback(callback_fields()))
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["order_id"] == "ORD-001"
    assert data["status"] == "succeeded"
    assert data["transaction_no"] == "14226112"


def test_callback_with_tampered_field(client, callback_fields, signed_callback):
    query = signed_callback(callback_fields(vnp_ResponseCode="24"))
    query["vnp_ResponseCode"] = "00"
    server_side = signing.sign(
        canonical.encode_parameters({k: v for k, v in query.items() if not k.startswith("vnp_SecureHash")}),
        TEST_SECRET,
    )

    resp = client.get(f"{BASE}/callback", params=query)

    assert resp.status_code == 400
    assert resp.json()["code"] == 60002
    # Error bodies never echo the expected signature or the secret
    assert server_side not in resp.text
    assert TEST_SECRET not in resp.text


def test_callback_without_signature(client, callback_fields):
    resp = client.get(f"{BASE}/callback", params=callback_fields())
    assert resp.status_code == 400
    assert resp.json()["code"] == 60007


def test_callback_with_malformed_amount(client, callback_fields, signed_callback):
    resp = client.get(f"{BASE}/callback", params=signed_callback(callback_fields(vnp_Amount="1e6")))
    assert resp.status_code == 400
    assert resp.json()["code"] == 60006


def test_ipn_acknowledges_registered_order(client, callback_fields, signed_callback):
    _create(client)
    query = signed_callback(callback_fields())

    first = client.get(f"{BASE}/ipn", params=query)
    second = client.get(f"{BASE}/ipn", params=query)

    assert first.status_code == 200
    assert first.json() == {"RspCode": "00", "Message": "Confirm Success"}
    assert second.json()["RspCode"] == "02"


def test_ipn_rejects_bad_signature_with_provider_ack(client, callback_fields, signed_callback):
    resp = client.get(f"{BASE}/ipn", params=signed_callback(callback_fields(), secret="wrong"))
    assert resp.status_code == 200
    assert resp.json()["RspCode"] == "97"


async def _ipn_from(peer: str, query: dict[str, str]) -> httpx.Response:
    transport = httpx.ASGITransport(app=app, client=(peer, 41000))
    async with httpx.AsyncClient(transport=transport, base_url="http://gateway.test") as ac:
        return await ac.get(f"{BASE}/ipn", params=query)


@pytest.mark.asyncio
async def test_ipn_source_allowlist(monkeypatch, callback_fields, signed_callback):
    query = signed_callback(callback_fields())

    monkeypatch.setattr(payment_settings.webhook, "ip_allowlist", ["113.160.92.0/24"])
    blocked = await _ipn_from("203.0.113.5", query)
    assert blocked.status_code == 403

    monkeypatch.setattr(payment_settings.webhook, "ip_allowlist", ["203.0.113.0/24"])
    allowed = await _ipn_from("203.0.113.5", query)
    assert allowed.status_code == 200
    assert allowed.json()["RspCode"] == "01"

    monkeypatch.setattr(payment_settings.webhook, "ip_allowlist", ["203.0.113.5"])
    assert (await _ipn_from("203.0.113.5", query)).status_code == 200


@pytest.mark.asyncio
async def test_ipn_allowlist_ignores_forwarded_headers(monkeypatch, callback_fields, signed_callback):
    monkeypatch.setattr(payment_settings.webhook, "ip_allowlist", ["113.160.92.0/24"])
    transport = httpx.ASGITransport(app=app, client=("198.51.100.20", 41000))
    async with httpx.AsyncClient(transport=transport, base_url="http://gateway.test") as ac:
        resp = await ac.get(
            f"{BASE}/ipn",
            params=signed_callback(callback_fields()),
            headers={"X-Forwarded-For": "113.160.92.10"},
        )
    assert resp.status_code == 403


@pytest.fixture
def unconfigured_client():
    gateway = VnpayClient(VnpayGatewayConfig())

    async def _service() -> PaymentService:
        return PaymentService(gateway=gateway, repository=InMemoryPaymentRepository())

    app.dependency_overrides[get_vnpay_service] = _service
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_vnpay_service, None)


def test_create_payment_without_merchant_config_is_client_error(unconfigured_client):
    resp = _create(unconfigured_client)
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == 60005
    assert body["error"]["details"]["missing"] == ["tmn_code", "hash_secret", "payment_url", "return_url"]
    assert TEST_SECRET not in resp.text


def test_ipn_without_merchant_config_acks_unknown_error(unconfigured_client, callback_fields, signed_callback):
    resp = unconfigured_client.get(f"{BASE}/ipn", params=signed_callback(callback_fields()))
    assert resp.status_code == 200
    assert resp.json() == {"RspCode": "99", "Message": "Unknown error"}


def test_callback_without_merchant_config_is_client_error(unconfigured_client, callback_fields, signed_callback):
    resp = unconfigured_client.get(f"{BASE}/callback", params=signed_callback(callback_fields()))
    assert resp.status_code == 400
    assert resp.json()["code"] == 60005
