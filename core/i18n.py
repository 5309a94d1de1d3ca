from __future__ import annotations

import gettext
from contextvars import ContextVar
from pathlib import Path

import structlog

_current_locale: ContextVar[str] = ContextVar("current_locale", default="en")
_translators: dict[str, gettext.NullTranslations] = {}
_logger = structlog.get_logger(__name__)

# Built-in English texts for message keys; .po catalogs under locales/ override them
DEFAULT_MESSAGES: dict[str, str] = {
    "welcome": "Welcome to the VNPay gateway service",
    "health.ok": "Service healthy",
    "error.internal": "Internal server error",
    "validation.failed": "Validation failed: {reason}",
    "validation.domain": "Validation failed",
    "payments.intent.created": "Payment URL created",
    "payments.callback.verified": "Callback verified",
    "payments.config.missing": "VNPay configuration not found",
    "payments.signature.invalid": "Invalid signature",
    "payments.signature.missing": "Missing signature",
    "payments.response.malformed": "Malformed provider response: {field}",
    "payments.order.not_found": "Payment for order {order_id} not found",
    "payments.order.settled": "Payment for order {order_id} already settled",
    "payments.amount.invalid": "Amount must be greater than zero",
    "payments.order_id.missing": "Order reference is required",
}


def set_locale(locale: str) -> None:
    """Set current request locale (fallback to 'en')."""
    _current_locale.set(locale or "en")


def get_locale() -> str:
    """Get current request locale (default 'en')."""
    return _current_locale.get()


def _get_translator(locale: str) -> gettext.NullTranslations:
    tr = _translators.get(locale)
    if tr is not None:
        return tr
    localedir = Path(__file__).resolve().parent.parent / "locales"
    tr = gettext.translation(
        domain="messages",
        localedir=str(localedir),
        languages=[locale],
        fallback=True,
    )
    _translators[locale] = tr
    return tr


def t(msgid: str, **params) -> str:
    """Translate msgid using current locale and format with params.

    If translation file is missing or key not found, falls back to the
    built-in English text, then to msgid itself.
    """
    text = _get_translator(get_locale()).gettext(msgid)
    if text == msgid:
        text = DEFAULT_MESSAGES.get(msgid, msgid)
    if not params:
        return text
    try:
        return text.format(**params)
    except (KeyError, IndexError, ValueError) as exc:
        # Fall back to unformatted text to avoid breaking UX
        _logger.warning("i18n_format_failed", msgid=msgid, params=list(params.keys()), error=str(exc))
        return text
