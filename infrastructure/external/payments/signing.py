"""
HMAC-SHA512 signing and verification over canonical payloads.
"""
from __future__ import annotations

import hashlib
import hmac
import string
from typing import Optional


DIGEST = hashlib.sha512
SIGNATURE_HEX_LENGTH = DIGEST().digest_size * 2
_HEX_DIGITS = frozenset(string.hexdigits)


def sign(payload: str, secret: str) -> str:
    """Return the lowercase hex HMAC-SHA512 of ``payload`` keyed by ``secret``."""
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), DIGEST).hexdigest()


def _normalize_claimed(claimed: Optional[str]) -> Optional[str]:
    if not claimed:
        return None
    value = claimed.strip()
    if len(value) != SIGNATURE_HEX_LENGTH or not _HEX_DIGITS.issuperset(value):
        return None
    return value.lower()


def verify(payload: str, secret: str, claimed: Optional[str]) -> bool:
    """Check ``claimed`` against a freshly computed signature.

    Missing, empty, or malformed hex never raises; it simply fails.
    Comparison is case-insensitive and constant-time.
    """
    normalized = _normalize_claimed(claimed)
    if normalized is None:
        return False
    return hmac.compare_digest(sign(payload, secret), normalized)


__all__ = ["sign", "verify", "SIGNATURE_HEX_LENGTH"]
