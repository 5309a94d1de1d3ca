def test_vnpay_routes_registered():
    # Basic import test to ensure router loads
    from main import app
    routes = {r.path for r in app.routes}
    assert "/api/v1/payments/vnpay/create-payment" in routes
    assert "/api/v1/payments/vnpay/callback" in routes
    assert "/api/v1/payments/vnpay/ipn" in routes


def test_gateway_factory_resolves_vnpay():
    import pytest

    from infrastructure.external.payments import get_payment_gateway
    from infrastructure.external.payments.exceptions import PaymentValidationError
    from infrastructure.external.payments.vnpay_client import VnpayClient

    assert isinstance(get_payment_gateway("vnpay"), VnpayClient)
    with pytest.raises(PaymentValidationError):
        get_payment_gateway("stripe")
