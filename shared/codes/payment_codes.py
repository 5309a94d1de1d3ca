"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    SIGNATURE_ERROR = 60002
    CONFIGURATION_ERROR = 60005
    MALFORMED_PROVIDER_RESPONSE = 60006
    MISSING_SIGNATURE = 60007
    PAYMENT_NOT_FOUND = 60008
    PAYMENT_ALREADY_SETTLED = 60009


# Provider→internal status mapping (keyed by vnp_TransactionStatus)
PROVIDER_STATUS_TO_INTERNAL = {
    "vnpay": {
        "00": "succeeded",
        "01": "pending",
        "02": "failed",
        "04": "failed",  # reversed
        "05": "pending",  # refund processing at provider
        "06": "pending",  # refund sent to bank
        "07": "suspected_fraud",
        "09": "failed",  # refund rejected
    },
}

# vnp_ResponseCode → message (VNPay merchant integration guide)
VNPAY_RESPONSE_MESSAGES = {
    "00": "Transaction successful",
    "07": "Amount deducted, transaction suspected of fraud",
    "09": "Card/account not registered for internet banking",
    "10": "Card/account authentication failed more than 3 times",
    "11": "Payment timed out",
    "12": "Card/account is locked",
    "13": "Wrong OTP entered",
    "24": "Customer canceled the transaction",
    "51": "Insufficient balance",
    "65": "Daily transaction limit exceeded",
    "75": "Bank under maintenance",
    "79": "Wrong payment password entered too many times",
    "99": "Unknown error",
}


class IpnResponseCode:
    """RspCode values VNPay expects in the IPN acknowledgement."""

    CONFIRM_SUCCESS = "00"
    ORDER_NOT_FOUND = "01"
    ORDER_ALREADY_CONFIRMED = "02"
    INVALID_AMOUNT = "04"
    INVALID_SIGNATURE = "97"
    UNKNOWN_ERROR = "99"


__all__ = [
    "PaymentCode",
    "PROVIDER_STATUS_TO_INTERNAL",
    "VNPAY_RESPONSE_MESSAGES",
    "IpnResponseCode",
]
