"""Base model for values derived from the stove status document.

Every model built from stove data inherits from :class:`StoveBaseModel`,
which drops blank strings and ``None`` before validation so the field
default is used instead.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

# Values the firmware reports when a field is not populated.
_SENTINELS = frozenset({"", "-", "--"})


class StoveBaseModel(BaseModel):
    """Frozen base for models parsed from stove payloads."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_sentinels(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            cleaned[key] = value
        return cleaned
