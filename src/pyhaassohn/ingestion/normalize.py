"""Normalization helpers.

Flattens the stove's nested status document into dotted keys and coerces
raw values into the type each capability declares.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pyhaassohn._constants import OBJECT_AS_STRING_KEYS

Scalar = bool | int | float | str | None
CapabilityValue = bool | float | str


class CapabilityType(StrEnum):
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"


CAPABILITY_TYPES: dict[str, CapabilityType] = {
    "onoff": CapabilityType.BOOLEAN,
    "target_temperature": CapabilityType.NUMBER,
    "measure_temperature": CapabilityType.NUMBER,
    "stove_eco_mode": CapabilityType.BOOLEAN,
    "stove_weekprogram_active": CapabilityType.BOOLEAN,
    "meta_eco_editable": CapabilityType.BOOLEAN,
    "stove_cleaning_in": CapabilityType.NUMBER,
    "stove_maintenance_in": CapabilityType.NUMBER,
    "stove_consumption": CapabilityType.NUMBER,
    "stove_pellets": CapabilityType.NUMBER,
    "stove_heating_curve": CapabilityType.NUMBER,
    "stove_ignitions": CapabilityType.NUMBER,
    "stove_on_time": CapabilityType.NUMBER,
    "stove_ash_limit": CapabilityType.NUMBER,
    "stove_mode": CapabilityType.STRING,
    "stove_zone": CapabilityType.NUMBER,
    "stove_error": CapabilityType.STRING,
    "stove_error_state": CapabilityType.BOOLEAN,
}

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})


def _to_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def flatten(document: Mapping[str, Any], prefix: str = "") -> dict[str, Scalar]:
    """Flatten a status document into ``{"a.b.c": scalar}``.

    Arrays and the keys in ``OBJECT_AS_STRING_KEYS`` are serialized to JSON
    instead of being recursed into; every other nested object recurses.
    """
    output: dict[str, Scalar] = {}
    for key, value in document.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping) and full_key not in OBJECT_AS_STRING_KEYS:
            output.update(flatten(value, full_key))
        elif isinstance(value, (Mapping, list, tuple)):
            output[full_key] = _to_json(value)
        else:
            output[full_key] = value
    return output


def coerce_boolean(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def coerce_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            parsed = float(stripped)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def coerce_string(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    try:
        return _to_json(value)
    except (TypeError, ValueError):
        return None


def coerce_value(capability_id: str, value: Any) -> CapabilityValue | None:
    """Coerce *value* to the declared type of *capability_id*.

    Returns ``None`` for unknown capabilities and for values that do not
    fit the declared type, so callers skip the write entirely.
    """
    capability_type = CAPABILITY_TYPES.get(capability_id)
    if capability_type is None:
        return None
    if capability_type is CapabilityType.BOOLEAN:
        return coerce_boolean(value)
    if capability_type is CapabilityType.NUMBER:
        return coerce_number(value)
    return coerce_string(value)


def normalize_meta_value(value: Any) -> str | None:
    """Normalize a ``meta.*`` value for the settings store (empty -> ``None``)."""
    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None
    return coerce_string(value)
