"""Client and device configuration for pyhaassohn."""

from __future__ import annotations

import dataclasses
import math
import os
import re
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pyhaassohn._constants import DEFAULT_MAX_PELLETS_KG, DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT, MIN_PELLETS_KG
from pyhaassohn.exceptions import StoveConfigError

_PORT_SUFFIX = re.compile(r":\d+$")


class PelletsAutoResetMode(StrEnum):
    """Hopper refill auto-detection policy."""

    NONE = "none"
    RESET15 = "reset15"
    RESET30 = "reset30"

    @property
    def refill_kg(self) -> float | None:
        """Remaining value to snap to when the hopper reads empty."""
        if self is PelletsAutoResetMode.RESET15:
            return 15.0
        if self is PelletsAutoResetMode.RESET30:
            return 30.0
        return None


def _parse_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def parse_auto_reset_mode(value: Any) -> PelletsAutoResetMode:
    try:
        return PelletsAutoResetMode(value)
    except ValueError:
        return PelletsAutoResetMode.NONE


def parse_pellets_max_kg(value: Any) -> float:
    parsed = _parse_number(value)
    if parsed is None:
        return DEFAULT_MAX_PELLETS_KG
    return max(MIN_PELLETS_KG, parsed)


def parse_poll_interval(value: Any) -> float:
    parsed = _parse_number(value)
    if parsed is None or parsed <= 0:
        return DEFAULT_POLL_INTERVAL
    return parsed


def normalize_address(address: Any, port: Any = None) -> str:
    """Combine an operator-supplied address and port into ``host[:port]``.

    The port is only appended when it is numeric and the address does not
    already carry one.
    """
    trimmed = str(address if address is not None else "").strip()
    if not trimmed:
        return ""
    port_number = _parse_number(port) if port not in ("", None) else None
    if port_number is not None and not _PORT_SUFFIX.search(trimmed):
        return f"{trimmed}:{int(port_number)}"
    return trimmed


def build_base_url(address: str) -> str:
    """Turn a normalized address into a base URL (plain HTTP unless a scheme is given)."""
    trimmed = address.strip()
    if not trimmed:
        raise StoveConfigError("Device address is not configured")
    with_scheme = trimmed if "://" in trimmed else f"http://{trimmed}"
    return with_scheme.rstrip("/")


@dataclasses.dataclass(frozen=True)
class StoveConfig:
    """Stove connection and pellet tracking configuration.

    Parameters
    ----------
    address : str
        Host name or IP of the stove, optionally with scheme and port.
    pin : str
        Device PIN as shown on the stove display. Never sent in clear.
    port : int or None
        Explicit port, appended to *address* when it has none.
    poll_interval : float
        Seconds between reconciliation passes.
    timeout : float
        Hard per-request deadline in seconds.
    pellets_kg : float or None
        Operator-entered remaining pellets (settings value).
    pellets_max_kg : float
        Hopper capacity; remaining pellets are clamped to it.
    pellets_auto_reset : PelletsAutoResetMode
        Refill value to assume when the estimate reaches zero.
    """

    address: str = ""
    pin: str = ""
    port: int | None = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    timeout: float = DEFAULT_TIMEOUT
    pellets_kg: float | None = None
    pellets_max_kg: float = DEFAULT_MAX_PELLETS_KG
    pellets_auto_reset: PelletsAutoResetMode = PelletsAutoResetMode.NONE

    @property
    def resolved_address(self) -> str:
        return normalize_address(self.address, self.port)

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any], **overrides: Any) -> StoveConfig:
        """Create configuration from the platform settings store.

        Recognized keys: ``address``, ``pin``, ``port``, ``pollInterval``,
        ``pellets_kg``, ``pellets_max_kg``, ``pellets_auto_reset``.
        """
        port = _parse_number(settings.get("port"))
        config_kwargs: dict[str, Any] = {
            "address": str(settings.get("address") or "").strip(),
            "pin": str(settings.get("pin") or "").strip(),
            "port": int(port) if port is not None else None,
            "poll_interval": parse_poll_interval(settings.get("pollInterval", DEFAULT_POLL_INTERVAL)),
            "pellets_kg": _parse_number(settings.get("pellets_kg")),
            "pellets_max_kg": parse_pellets_max_kg(settings.get("pellets_max_kg")),
            "pellets_auto_reset": parse_auto_reset_mode(settings.get("pellets_auto_reset")),
        }
        config_kwargs.update(overrides)
        return cls(**config_kwargs)

    @classmethod
    def from_env(cls, **overrides: Any) -> StoveConfig:
        """Create configuration from ``HAASSOHN_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        settings: dict[str, Any] = {}
        _ENV_SETTINGS_MAP = {
            "HAASSOHN_ADDRESS": "address",
            "HAASSOHN_PIN": "pin",
            "HAASSOHN_PORT": "port",
            "HAASSOHN_POLL_INTERVAL": "pollInterval",
            "HAASSOHN_PELLETS_KG": "pellets_kg",
            "HAASSOHN_PELLETS_MAX_KG": "pellets_max_kg",
            "HAASSOHN_PELLETS_AUTO_RESET": "pellets_auto_reset",
        }
        for env_key, setting_key in _ENV_SETTINGS_MAP.items():
            val = env.get(env_key)
            if val is not None:
                settings[setting_key] = val

        timeout_env = env.get("HAASSOHN_TIMEOUT")
        if timeout_env is not None and "timeout" not in overrides:
            overrides["timeout"] = float(timeout_env)

        return cls.from_settings(settings, **overrides)
