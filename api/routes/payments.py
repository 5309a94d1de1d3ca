"""
Payments API routes.

Exposes VNPay payment creation, the browser return URL and the IPN
(server-to-server) notification. Keep this thin: signing and verification
live in the gateway adapter, settlement in the application service.
"""
from __future__ import annotations

import ipaddress

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette import status as http_status

from api.dependencies import get_vnpay_service
from api.middleware import resolve_client_ip
from application.dtos.payments import CallbackRejectReason, CreatePayment, IpnAck
from application.services.payment_service import PaymentService
from core.response import success_response
from core.i18n import t
from core.logging_config import get_logger
from core.settings import payment_settings
from infrastructure.external.payments.exceptions import (
    MalformedProviderResponseError,
    PaymentSignatureError,
)


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


def _ip_allowed(remote_ip: str | None) -> bool:
    allowlist = payment_settings.webhook.ip_allowlist or []
    if not allowlist:
        return True
    if not remote_ip:
        return False
    if remote_ip in allowlist:
        return True
    try:
        rip = ipaddress.ip_address(remote_ip)
    except ValueError:
        return False
    for entry in allowlist:
        if "/" not in entry:
            continue
        try:
            if rip in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            logger.warning("webhook_allowlist_entry_invalid", entry=entry)
    return False


@router.post("/vnpay/create-payment", summary="Create VNPay payment URL")
async def create_payment(
    payload: CreatePayment,
    request: Request,
    service: PaymentService = Depends(get_vnpay_service),
):
    client_ip = getattr(request.state, "client_ip", None) or resolve_client_ip(request)
    intent = await service.create_payment(payload, client_ip=client_ip)
    return success_response(
        data={
            "payment_url": intent.payment_url,
            "order_id": intent.order_id,
            "amount": intent.amount,
            "currency": intent.currency,
            "provider": intent.provider,
        },
        message=t("payments.intent.created"),
    )


@router.get("/vnpay/callback", summary="VNPay return URL")
async def payment_callback(request: Request, service: PaymentService = Depends(get_vnpay_service)):
    outcome = service.handle_return(dict(request.query_params))
    if not outcome.valid:
        if outcome.reason is CallbackRejectReason.MISSING_SIGNATURE:
            raise PaymentSignatureError("Missing signature", provider="vnpay", missing=True)
        if outcome.reason is CallbackRejectReason.MALFORMED_AMOUNT:
            raise MalformedProviderResponseError(provider="vnpay", field="vnp_Amount")
        raise PaymentSignatureError("Invalid signature", provider="vnpay")
    return success_response(
        data=outcome.result.model_dump(mode="json"),
        message=t("payments.callback.verified"),
    )


@router.get("/vnpay/ipn", summary="VNPay IPN", response_model=IpnAck)
async def payment_ipn(request: Request, service: PaymentService = Depends(get_vnpay_service)):
    remote_ip = request.client.host if request.client else None
    if not _ip_allowed(remote_ip):
        logger.warning("webhook_ip_rejected", provider="vnpay", remote_ip=remote_ip)
        raise HTTPException(status_code=http_status.HTTP_403_FORBIDDEN, detail="IP not allowed")
    ack = await service.handle_ipn(dict(request.query_params))
    logger.info("payment_ipn_acknowledged", provider="vnpay", rsp_code=ack.RspCode)
    return ack
