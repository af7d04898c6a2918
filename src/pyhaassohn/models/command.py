"""Command bookkeeping used for read-back confirmation."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PendingCommand(BaseModel):
    """A command sent to the stove, waiting to be seen in a later poll."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    payload: dict[str, Any]
    issued_at: float


class CommandCheck(BaseModel):
    """Outcome of comparing a pending command against a fresh status."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    payload: dict[str, Any]
    confirmed: list[str] = Field(default_factory=list)
    mismatched: dict[str, Any] = Field(
        default_factory=dict,
        description="Field -> value reported by the stove (None when absent).",
    )
    expired: bool = False

    @property
    def matched(self) -> bool:
        return not self.expired and not self.mismatched


class ConnectionTestResult(BaseModel):
    """Result of a one-shot status fetch during onboarding."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    status: dict[str, Any] | None = None
    error: str | None = None
