"""Flow trigger events emitted by the reconciliation loop."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FlowTrigger(StrEnum):
    ERROR_OCCURRED = "error_occurred"
    WEEKPROGRAM_CHANGED = "weekprogram_changed"
    ECO_MODE_CHANGED = "eco_mode_changed"
    PELLETS_CHANGED = "pellets_changed"
    CLEANING_DUE_CHANGED = "cleaning_due_changed"
    ASH_LIMIT_CHANGED = "ash_limit_changed"


class TriggerEvent(BaseModel):
    """A flow trigger with its token payload."""

    model_config = ConfigDict(frozen=True)

    trigger: FlowTrigger
    tokens: dict[str, Any] = Field(default_factory=dict)
    fired_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


def _on_off(value: Any) -> str:
    return "on" if value else "off"


#: Capability id -> (trigger, token name, token formatter).
CAPABILITY_TRIGGERS: dict[str, tuple[FlowTrigger, str, Callable[[Any], Any]]] = {
    "stove_weekprogram_active": (FlowTrigger.WEEKPROGRAM_CHANGED, "enabled", bool),
    "stove_eco_mode": (FlowTrigger.ECO_MODE_CHANGED, "mode", _on_off),
    "stove_pellets": (FlowTrigger.PELLETS_CHANGED, "pellets_kg", float),
    "stove_cleaning_in": (FlowTrigger.CLEANING_DUE_CHANGED, "cleaning_hours", float),
    "stove_ash_limit": (FlowTrigger.ASH_LIMIT_CHANGED, "ash_limit_percent", float),
}


def capability_trigger(capability_id: str, value: Any) -> TriggerEvent | None:
    """Build the trigger fired when *capability_id* changes to *value*, if any."""
    entry = CAPABILITY_TRIGGERS.get(capability_id)
    if entry is None:
        return None
    trigger, token, formatter = entry
    return TriggerEvent(trigger=trigger, tokens={token: formatter(value)})


def error_trigger(error_code: str, error_message: str) -> TriggerEvent:
    return TriggerEvent(
        trigger=FlowTrigger.ERROR_OCCURRED,
        tokens={"error_code": error_code, "error_message": error_message},
    )
