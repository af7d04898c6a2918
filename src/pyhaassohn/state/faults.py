"""Fault state machine.

Tracks the stove's fault number across polls and reports the transition,
so side effects (warning, notification, flow trigger) happen exactly once
per change instead of once per poll.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from pyhaassohn._constants import ERROR_NUMBER_KEYS, HOPPER_EMPTY_FAULTS, UNKNOWN_ERROR_TEXT
from pyhaassohn.ingestion.normalize import coerce_number

_DIGITS = re.compile(r"(\d{1,4})")

ERROR_CODE_MAP: dict[int, tuple[str, ...]] = {
    1: (
        "STB activated due to overheating",
        "Damaged fuse (F1) on the main unit",
        "Ignition short circuit",
    ),
    2: (
        "Burner is dirty",
        "Pellet hopper is empty",
        "Ignition fault",
        "Burner not seated properly",
        "Flame temperature sensor faulty",
        "Drop tube / auger blocked",
        "Auger motor faulty",
        "External air supply from outside connected",
    ),
    3: (
        "Flue gas paths / chimney are dirty",
        "Heating curve set too low",
        "Room temperature sensor is on the floor or on the wall",
    ),
    5: (
        "Burner is dirty",
        "Pellet hopper is empty",
        "Drop tube / auger blocked",
        "Room is too airtight - required combustion air cannot enter the room",
        "Flue gas temperature sensor faulty",
        "Auger motor faulty",
        "Pellet calorific value is insufficient",
    ),
    6: (
        "Firebox door is open during operation",
        "Door contact switch is not in the correct position",
        "Broken electrical cable to the door contact switch",
        "Loose contact on the door contact switch or main unit",
    ),
    7: ("Flue gas temperature sensor damaged or disconnected",),
    8: ("Flue gas temperature sensor faulty",),
    9: ("Warning: Firebox door is open during shutdown or standby",),
    11: ("Room temperature sensor damaged or disconnected",),
    12: ("Room temperature sensor faulty",),
    13: ("Heating water temperature sensor faulty or disconnected",),
    14: ("Water temperature sensor short circuit",),
    15: (
        "Exhaust fan fault",
        "Exhaust fan power supply interrupted",
    ),
    18: ("Power outage",),
    21: (
        "Burner is dirty",
        "Pellet hopper is empty",
        "Drop tube / auger blocked",
        "Room is too airtight - required combustion air cannot enter the room",
        "Flue gas temperature sensor faulty",
        "Auger motor faulty",
        "Pellet calorific value is insufficient",
    ),
    22: (
        "Chimney draft is too low",
        "Chimney draft is too high",
        "Burner is dirty",
        "Flue duct is too long (horizontal)",
        "Flue gas temperature sensor faulty",
    ),
    23: ("Flame temperature sensor damaged or disconnected",),
    24: ("Lower temperature sensor damaged or disconnected",),
    26: (
        "Pellet hopper is empty",
        "Burner not seated properly",
        "Burner is dirty",
        "Pellet calorific value is insufficient",
        "Drop tube / auger blocked",
        "Room is too airtight - required combustion air cannot enter the room",
        "Flame temperature sensor faulty",
        "Auger motor faulty",
    ),
    27: (
        "Burner is dirty",
        "Burner not seated properly",
        "Door does not seal",
    ),
    28: (
        "Burner / combustion chamber is dirty",
        "Lower temperature sensor faulty",
    ),
    33: (
        "Not connected to WLAN",
        "Incorrect WLAN PIN",
        "No IP address received",
    ),
    34: ("No internet connection available",),
    40: ("Combustion chamber was not cleaned within the required interval",),
    41: ("Maintenance interval exceeded (1000 kg)",),
    43: ("Flame temperature sensor faulty",),
    50: ("Backup battery discharged",),
    60: ("Factory parameter errors were loaded",),
    1000: ("Device restart",),
}


def format_error_code(number: int) -> str:
    """``2 -> "F002"``; codes of four digits or more are not padded."""
    if number >= 1000:
        return f"F{number}"
    return f"F{number:03d}"


def format_error_message(code: str, causes: tuple[str, ...] | list[str] | None) -> str:
    if not causes:
        return f"{code}: {UNKNOWN_ERROR_TEXT}"
    return f"{code}: {' / '.join(causes)}"


def parse_error_number(value: Any) -> int | None:
    direct = coerce_number(value)
    if direct is not None:
        return int(direct)
    if isinstance(value, str):
        match = _DIGITS.search(value)
        if match:
            return int(match.group(1))
    return None


def extract_fault_number(flat: Mapping[str, Any]) -> int | None:
    """Return the first parseable fault number among the known status keys."""
    for key in ERROR_NUMBER_KEYS:
        parsed = parse_error_number(flat.get(key))
        if parsed is not None:
            return parsed
    return None


class FaultTransition(StrEnum):
    STEADY_CLEAR = "steady_clear"
    ENTERED = "entered"
    CHANGED = "changed"
    MESSAGE_REFRESHED = "message_refreshed"
    STEADY = "steady"
    CLEARED = "cleared"


class ErrorState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    last_error_code: str | None = None
    last_error_message: str | None = None

    @property
    def faulted(self) -> bool:
        return self.last_error_code is not None


class FaultUpdate(BaseModel):
    """Result of one reconciliation of the fault state."""

    model_config = ConfigDict(frozen=True)

    transition: FaultTransition
    number: int = 0
    code: str | None = None
    message: str | None = None

    @property
    def faulted(self) -> bool:
        return self.code is not None

    @property
    def hopper_empty(self) -> bool:
        return self.number in HOPPER_EMPTY_FAULTS

    @property
    def notify(self) -> bool:
        """Whether this update warrants a notification and an ``error_occurred`` trigger."""
        return self.transition in (FaultTransition.ENTERED, FaultTransition.CHANGED)


class ErrorStateMachine:
    """Clear/Faulted state machine driven by the flattened status.

    *causes* maps fault numbers to human-readable causes; swapping it (for a
    different language) makes the next poll refresh the warning text without
    re-notifying.
    """

    def __init__(self, causes: Mapping[int, tuple[str, ...] | list[str]] | None = None) -> None:
        self._causes = causes if causes is not None else ERROR_CODE_MAP
        self._state = ErrorState()

    @property
    def state(self) -> ErrorState:
        return self._state.model_copy()

    def set_causes(self, causes: Mapping[int, tuple[str, ...] | list[str]]) -> None:
        self._causes = causes

    def describe(self, number: int) -> tuple[str, str]:
        code = format_error_code(number)
        return code, format_error_message(code, self._causes.get(number))

    def reconcile(self, flat: Mapping[str, Any]) -> FaultUpdate:
        number = extract_fault_number(flat)

        if not number:
            if self._state.faulted:
                self._state = ErrorState()
                return FaultUpdate(transition=FaultTransition.CLEARED)
            return FaultUpdate(transition=FaultTransition.STEADY_CLEAR)

        code, message = self.describe(number)
        previous = self._state

        if previous.last_error_code != code:
            transition = FaultTransition.ENTERED if previous.last_error_code is None else FaultTransition.CHANGED
        elif previous.last_error_message != message:
            transition = FaultTransition.MESSAGE_REFRESHED
        else:
            transition = FaultTransition.STEADY

        self._state = ErrorState(last_error_code=code, last_error_message=message)
        return FaultUpdate(transition=transition, number=number, code=code, message=message)
