"""
Canonical parameter encoding for query-string signed providers.

The signature is computed over the exact bytes produced here, so the
ordering and escaping rules must match the provider's own implementation:

1. Drop parameters whose value is ``None`` or ``""``.
2. Sort by key, byte-wise ascending on the UTF-8 encoding.
3. Percent-encode keys and values with ``quote_plus`` (space becomes ``+``,
   reserved and non-ASCII characters become ``%XX`` with uppercase hex).
4. Join as ``key=value`` pairs with ``&``.

Everything in this module is pure and free of I/O.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Iterator, Mapping, Optional
from urllib.parse import parse_qsl, quote_plus


SIGNATURE_FIELD = "vnp_SecureHash"


class ParameterSet(Mapping[str, str]):
    """Provider parameters collected during request construction.

    Blank values are skipped on insert; re-adding a key replaces its value.
    Once frozen the set rejects further mutation.
    """

    __slots__ = ("_data", "_frozen")

    def __init__(self, initial: Optional[Mapping[str, Optional[str]]] = None) -> None:
        self._data: dict[str, str] = {}
        self._frozen = False
        for key, value in (initial or {}).items():
            self.add(key, value)

    def add(self, key: str, value: Optional[str]) -> "ParameterSet":
        if self._frozen:
            raise TypeError("ParameterSet is frozen")
        if not isinstance(key, str) or not key:
            raise ValueError("parameter name must be a non-empty string")
        if value is None or value == "":
            return self
        self._data[key] = str(value)
        return self

    def freeze(self) -> Mapping[str, str]:
        self._frozen = True
        return MappingProxyType(self._data)

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"ParameterSet(keys={sorted(self._data)!r})"


def _ordinal(key: str) -> bytes:
    return key.encode("utf-8")


def encode_parameters(params: Mapping[str, Optional[str]]) -> str:
    """Return the canonical ``k=v&k=v`` payload for ``params``.

    An empty mapping yields an empty string; callers decide whether that is
    acceptable.
    """
    items = [(k, v) for k, v in params.items() if v is not None and v != ""]
    items.sort(key=lambda kv: _ordinal(kv[0]))
    return "&".join(f"{quote_plus(k)}={quote_plus(str(v))}" for k, v in items)


def decode_payload(payload: str) -> dict[str, str]:
    """Parse a canonical payload (or any form-encoded string) back into a dict."""
    return dict(parse_qsl(payload, keep_blank_values=True))


def build_signed_query(payload: str, signature: str) -> str:
    """Append the signature parameter to a canonical payload."""
    if not payload:
        return f"{SIGNATURE_FIELD}={signature}"
    return f"{payload}&{SIGNATURE_FIELD}={signature}"


__all__ = [
    "ParameterSet",
    "SIGNATURE_FIELD",
    "encode_parameters",
    "decode_payload",
    "build_signed_query",
]
