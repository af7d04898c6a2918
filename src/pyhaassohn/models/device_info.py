"""Firmware/hardware identity reported under ``meta.*``."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import Field, field_validator

from pyhaassohn.ingestion.normalize import normalize_meta_value
from pyhaassohn.models._base import StoveBaseModel

#: Model field -> flattened status key.
_META_KEYS: dict[str, str] = {
    "hw_version": "meta.hw_version",
    "sw_version": "meta.sw_version",
    "typ": "meta.typ",
}


class DeviceInfo(StoveBaseModel):
    """Identity fields mirrored into the settings store as ``meta_<field>``."""

    hw_version: str | None = Field(default=None, alias="meta.hw_version")
    sw_version: str | None = Field(default=None, alias="meta.sw_version")
    typ: str | None = Field(default=None, alias="meta.typ")

    @field_validator("hw_version", "sw_version", "typ", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> str | None:
        return normalize_meta_value(value)

    @classmethod
    def from_flat(cls, flat: Mapping[str, Any]) -> DeviceInfo:
        return cls.model_validate({key: flat.get(key) for key in _META_KEYS.values()})

    def settings_updates(self, settings: Mapping[str, Any]) -> dict[str, str]:
        """Return the ``meta_*`` settings that differ from *settings*."""
        updates: dict[str, str] = {}
        for field_name in _META_KEYS:
            value = getattr(self, field_name)
            setting_key = f"meta_{field_name}"
            current = settings.get(setting_key)
            if value is not None and value != str(current if current is not None else ""):
                updates[setting_key] = value
        return updates
