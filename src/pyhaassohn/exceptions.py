"""Custom exception hierarchy for pyhaassohn."""

from __future__ import annotations


class StoveError(Exception):
    """Base exception for all pyhaassohn errors."""


class StoveConfigError(StoveError):
    """Missing address or device not yet configured."""


class StoveTransportError(StoveError):
    """Network-level failure (connect, timeout, aborted response)."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class StoveProtocolError(StoveError):
    """The stove answered, but not with a usable response (non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        path: str = "",
    ) -> None:
        self.status_code = status_code
        self.path = path
        super().__init__(message)


class StoveValidationError(StoveError):
    """A command value could not be coerced to the type the stove expects."""


class StoveGuardViolation(StoveError):
    """A command was rejected because the stove state forbids it.

    Raised when setting the target temperature while the weekly program
    is active, or when changing eco mode while the stove reports it as
    not editable.
    """
