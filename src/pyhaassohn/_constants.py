"""Internal constants shared across the library."""

from __future__ import annotations

STATUS_PATH = "/status.cgi"
USER_AGENT = "pyhaassohn"
PIN_HEADER = "X-HS-PIN"

DEFAULT_POLL_INTERVAL: float = 10.0
DEFAULT_TIMEOUT: float = 5.0

# ------------------------------------------------------------------
# Pellet inventory
# ------------------------------------------------------------------

DEFAULT_PELLETS_KG: float = 15.0
MIN_PELLETS_KG: float = 0.0
DEFAULT_MAX_PELLETS_KG: float = 30.0
PELLETS_PRECISION = 2

STORE_PELLETS_REMAINING = "pelletsRemainingKg"
STORE_PELLETS_LAST_CONSUMPTION = "pelletsLastConsumptionKg"

# ------------------------------------------------------------------
# Command read-back
# ------------------------------------------------------------------

COMMAND_ECHO_WINDOW_S: float = 30.0
NUMERIC_EPSILON: float = 0.01

# ------------------------------------------------------------------
# Status key space
# ------------------------------------------------------------------

#: Nested objects serialized to JSON instead of being flattened.
OBJECT_AS_STRING_KEYS: frozenset[str] = frozenset({"meta.wlan_features"})

#: Flattened status key -> capability id.
STATE_TO_CAPABILITY: dict[str, str] = {
    "prg": "onoff",
    "sp_temp": "target_temperature",
    "is_temp": "measure_temperature",
    "mode": "stove_mode",
    "zone": "stove_zone",
    "cleaning_in": "stove_cleaning_in",
    "maintenance_in": "stove_maintenance_in",
    "consumption": "stove_consumption",
    "eco_mode": "stove_eco_mode",
    "wprg": "stove_weekprogram_active",
    "ht_char": "stove_heating_curve",
    "ignitions": "stove_ignitions",
    "on_time": "stove_on_time",
    "ash_limit": "stove_ash_limit",
    "meta.eco_editable": "meta_eco_editable",
}

#: Fault number candidates, in lookup order.
ERROR_NUMBER_KEYS: tuple[str, ...] = ("error.nr", "error", "err.nr", "err")

#: Fault numbers that imply an empty hopper.
HOPPER_EMPTY_FAULTS: frozenset[int] = frozenset({21, 26})

NO_ERROR_TEXT = "No error"
UNKNOWN_ERROR_TEXT = "Unknown error"
