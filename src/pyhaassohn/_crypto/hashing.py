"""Hash functions for the stove's nonce-based PIN authentication."""

from __future__ import annotations

import hashlib


def md5_hex(value: str) -> str:
    """Compute MD5 of a UTF-8 string, returning lowercase hex.

    Parameters
    ----------
    value : str
        The string to hash.

    Returns
    -------
    str
        32-character lowercase hex digest.
    """
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def session_secret(nonce: str, pin_hash: str) -> str:
    """Derive the ``X-HS-PIN`` header value from a stove nonce.

    Computed as ``md5(nonce + md5(pin))``; callers pass the already-hashed
    PIN so the clear PIN never has to be kept next to the nonce.
    """
    return md5_hex(nonce + pin_hash)
