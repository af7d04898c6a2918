"""Deterministic comparison and clamping policy.

This module contains no I/O. It decides when two values count as equal for
capability diffing and for command read-back.
"""

from __future__ import annotations

import math
from typing import Any

from pyhaassohn._constants import NUMERIC_EPSILON
from pyhaassohn.ingestion.normalize import coerce_boolean, coerce_number, coerce_string


def values_equal(current: Any, incoming: Any) -> bool:
    """Strict equality used to suppress redundant capability writes.

    Booleans never equal numbers, so ``True`` replacing ``1`` is a change.
    """
    if isinstance(current, bool) != isinstance(incoming, bool):
        return False
    if isinstance(current, float) and isinstance(incoming, float) and math.isnan(current) and math.isnan(incoming):
        return True
    return bool(current == incoming)


def command_value_matches(expected: Any, reported: Any, *, epsilon: float = NUMERIC_EPSILON) -> bool:
    """Type-aware equivalence between a sent command field and the stove's report."""
    if isinstance(expected, bool):
        return coerce_boolean(reported) is expected
    if isinstance(expected, (int, float)):
        number = coerce_number(reported)
        return number is not None and abs(number - float(expected)) <= epsilon
    if expected is None:
        return reported is None
    return coerce_string(reported) == coerce_string(expected)


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))
