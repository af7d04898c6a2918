"""Session state for authenticated writes to the stove."""

from __future__ import annotations

import time

from pydantic import BaseModel, ConfigDict, Field

from pyhaassohn._crypto.hashing import session_secret


class Session(BaseModel):
    """Nonce-derived credential for POST requests.

    A new session is created every time the stove hands out a nonce that
    differs from the one currently held.

    Parameters
    ----------
    nonce : str
        Server-issued token from ``meta.nonce`` of the status document.
    pin_hash : str
        ``md5(pin)`` in lowercase hex.
    created_at : float
        Monotonic timestamp (``time.monotonic()``) when the nonce was seen.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    nonce: str = Field(min_length=1)
    pin_hash: str
    created_at: float = Field(default_factory=time.monotonic)

    def secret(self) -> str:
        """Value of the ``X-HS-PIN`` header.

        Cached because the frozen model guarantees the inputs never change.
        """
        try:
            return str(object.__getattribute__(self, "_secret_cache"))
        except AttributeError:
            value = session_secret(self.nonce, self.pin_hash)
            object.__setattr__(self, "_secret_cache", value)
            return value
