"""Pellet inventory estimation.

The stove only reports cumulative lifetime consumption. Remaining pellets
are derived by subtracting consumption deltas from an operator-supplied
starting value, clamped to ``[0, max_kg]`` at all times.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict

from pyhaassohn._constants import (
    DEFAULT_MAX_PELLETS_KG,
    DEFAULT_PELLETS_KG,
    MIN_PELLETS_KG,
    PELLETS_PRECISION,
    STORE_PELLETS_LAST_CONSUMPTION,
    STORE_PELLETS_REMAINING,
)
from pyhaassohn.config import PelletsAutoResetMode
from pyhaassohn.exceptions import StoveValidationError
from pyhaassohn.ingestion.normalize import coerce_number
from pyhaassohn.platform import DeviceStore
from pyhaassohn.state.policy import clamp

_logger = logging.getLogger(__name__)

RemainingListener = Callable[[float], Awaitable[None]]


class PelletInventoryState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    remaining_kg: float | None = None
    last_consumption_kg: float | None = None
    max_kg: float = DEFAULT_MAX_PELLETS_KG
    auto_reset: PelletsAutoResetMode = PelletsAutoResetMode.NONE
    hold_auto_reset: bool = False


class PelletInventory:
    """Monotonically depleting pellet estimate.

    All remaining-value changes are persisted to *store* and reported to
    *on_change*; a value that does not change after clamping reports nothing.
    """

    def __init__(
        self,
        store: DeviceStore,
        *,
        on_change: RemainingListener | None = None,
        max_kg: float = DEFAULT_MAX_PELLETS_KG,
        auto_reset: PelletsAutoResetMode = PelletsAutoResetMode.NONE,
    ) -> None:
        self._store = store
        self._on_change = on_change
        self._state = PelletInventoryState(max_kg=max(MIN_PELLETS_KG, max_kg), auto_reset=auto_reset)

    @property
    def state(self) -> PelletInventoryState:
        return self._state.model_copy()

    @property
    def remaining_kg(self) -> float | None:
        return self._state.remaining_kg

    @property
    def hold_auto_reset(self) -> bool:
        return self._state.hold_auto_reset

    def clamp(self, value: float) -> float:
        if not math.isfinite(value):
            value = DEFAULT_PELLETS_KG
        return round(clamp(value, MIN_PELLETS_KG, self._state.max_kg), PELLETS_PRECISION)

    def restore(self, configured_kg: float | None = None) -> float:
        """Load the persisted estimate, else *configured_kg*, else the default."""
        stored_remaining = coerce_number(self._store.get_store_value(STORE_PELLETS_REMAINING))
        stored_consumption = coerce_number(self._store.get_store_value(STORE_PELLETS_LAST_CONSUMPTION))

        if stored_remaining is not None:
            start = stored_remaining
        elif configured_kg is not None:
            start = configured_kg
        else:
            start = DEFAULT_PELLETS_KG
        self._state.remaining_kg = self.clamp(start)

        if stored_consumption is not None:
            self._state.last_consumption_kg = stored_consumption
        return self._state.remaining_kg

    def set_auto_reset(self, mode: PelletsAutoResetMode) -> None:
        self._state.auto_reset = mode

    async def set_max_kg(self, max_kg: float) -> None:
        """Change the hopper capacity and re-clamp the current estimate."""
        self._state.max_kg = max(MIN_PELLETS_KG, max_kg)
        if self._state.remaining_kg is not None:
            await self.set_remaining(self._state.remaining_kg)

    async def on_consumption_report(self, cumulative_kg: float) -> None:
        """Apply a cumulative consumption reading from the stove.

        The first reading only establishes the baseline. Decreasing readings
        (counter reset) are treated as zero consumption.
        """
        if not math.isfinite(cumulative_kg):
            return

        if self._state.remaining_kg is None:
            self.restore()

        if self._state.last_consumption_kg is None:
            self._state.last_consumption_kg = cumulative_kg
            await self._store.set_store_value(STORE_PELLETS_LAST_CONSUMPTION, cumulative_kg)
            _logger.debug("Pellet consumption baseline set to %.2f kg", cumulative_kg)
            return

        delta = max(0.0, cumulative_kg - self._state.last_consumption_kg)
        current = self._state.remaining_kg if self._state.remaining_kg is not None else 0.0
        next_remaining = self.clamp(current - delta)

        if next_remaining == 0:
            refill = self._state.auto_reset.refill_kg
            if refill is not None and not self._state.hold_auto_reset:
                _logger.info("Pellet estimate reached 0 kg; assuming hopper refill to %.0f kg", refill)
                next_remaining = refill

        self._state.last_consumption_kg = cumulative_kg
        await self._store.set_store_value(STORE_PELLETS_LAST_CONSUMPTION, cumulative_kg)
        await self.set_remaining(next_remaining)

    async def on_manual_override(self, kg: Any) -> float:
        """Set remaining pellets directly (flow action or settings edit)."""
        value = coerce_number(kg)
        if value is None:
            raise StoveValidationError(f"Invalid pellets value: {kg!r}")
        self._state.hold_auto_reset = False
        await self.set_remaining(value)
        return self._state.remaining_kg if self._state.remaining_kg is not None else value

    async def force_empty(self) -> None:
        """Zero the estimate and suppress auto-reset until released."""
        self._state.hold_auto_reset = True
        await self.set_remaining(0.0)

    def release_hold(self) -> None:
        self._state.hold_auto_reset = False

    async def set_remaining(self, value: float) -> bool:
        normalized = self.clamp(value)
        if self._state.remaining_kg == normalized:
            return False

        self._state.remaining_kg = normalized
        await self._store.set_store_value(STORE_PELLETS_REMAINING, normalized)
        if self._on_change is not None:
            await self._on_change(normalized)
        return True
