"""Masking of stove credentials in debug logs.

Outbound headers carry the session secret (``X-HS-PIN``) and status
documents carry the nonce it is derived from.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SENSITIVE_KEYS: frozenset[str] = frozenset({"pin", "x-hs-pin", "nonce"})


def _is_sensitive(key: str) -> bool:
    # Flattened status keys (``meta.nonce``) are matched on their last segment.
    return key.rsplit(".", 1)[-1].lower() in _SENSITIVE_KEYS


def redact_for_log(values: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of *values* with credential fields replaced by ``<redacted>``."""
    redacted: dict[str, Any] = {}
    for key, value in values.items():
        if _is_sensitive(str(key)):
            redacted[key] = "<redacted>"
        elif isinstance(value, Mapping):
            redacted[key] = redact_for_log(value)
        else:
            redacted[key] = value
    return redacted
