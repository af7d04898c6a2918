"""Ingestion layer.

Turns the raw status document fetched by :class:`pyhaassohn.client.StoveClient`
into flat, typed values the reconciliation loop can diff against capabilities.
"""

from pyhaassohn.ingestion.normalize import (
    CAPABILITY_TYPES,
    CapabilityType,
    coerce_boolean,
    coerce_number,
    coerce_string,
    coerce_value,
    flatten,
    normalize_meta_value,
)

__all__ = [
    "CAPABILITY_TYPES",
    "CapabilityType",
    "coerce_boolean",
    "coerce_number",
    "coerce_string",
    "coerce_value",
    "flatten",
    "normalize_meta_value",
]
