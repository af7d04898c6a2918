"""Reconciliation loop for one pellet stove.

:class:`StoveDevice` polls the stove on a single timer, flattens each status
document, feeds the fault state machine and the pellet estimator, and then
diffs every mapped field against the host's last published capability value.
Side effects happen once per real change, never once per poll.

Commands pause the timer, POST through the client, and run one pass straight
away to read the new state back.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Collection, Mapping
from typing import Any

from pyhaassohn._constants import COMMAND_ECHO_WINDOW_S, NO_ERROR_TEXT, STATE_TO_CAPABILITY
from pyhaassohn.client import StatusDocument, StoveClient
from pyhaassohn.config import StoveConfig
from pyhaassohn.exceptions import StoveConfigError, StoveGuardViolation, StoveValidationError
from pyhaassohn.ingestion.normalize import coerce_boolean, coerce_number, coerce_value, flatten
from pyhaassohn.migrations import migrate_capabilities
from pyhaassohn.models.command import CommandCheck, PendingCommand
from pyhaassohn.models.device_info import DeviceInfo
from pyhaassohn.platform import DeviceHost
from pyhaassohn.state.events import TriggerEvent, capability_trigger, error_trigger
from pyhaassohn.state.faults import ErrorStateMachine, FaultTransition, FaultUpdate
from pyhaassohn.state.pellets import PelletInventory
from pyhaassohn.state.policy import command_value_matches, values_equal

_logger = logging.getLogger(__name__)

_CONNECTION_KEYS = frozenset({"address", "pin", "port", "pollInterval"})


def _wire_number(value: float) -> int | float:
    return int(value) if value.is_integer() else value


class StoveDevice:
    """State synchronization engine for a single stove.

    Usage::

        async with StoveDevice(host) as device:
            await device.set_target_temperature(21)

    Parameters
    ----------
    host : DeviceHost
        Capability, settings, store, flow and notification collaborators.
    client : StoveClient or None
        Pre-built client. When omitted the device builds one from the
        settings and owns its HTTP session.
    clock : callable
        Monotonic clock used for command read-back expiry.
    echo_window : float
        Seconds a sent command stays eligible for read-back confirmation.
    """

    def __init__(
        self,
        host: DeviceHost,
        *,
        client: StoveClient | None = None,
        clock: Callable[[], float] = time.monotonic,
        echo_window: float = COMMAND_ECHO_WINDOW_S,
    ) -> None:
        self._host = host
        self._client = client
        self._owns_client = client is None
        self._clock = clock
        self._echo_window = echo_window
        self._config = StoveConfig()
        self._poll_interval = self._config.poll_interval
        self._poll_handle: asyncio.TimerHandle | None = None
        self._poll_tasks: set[asyncio.Task[bool]] = set()
        self._poll_idle = asyncio.Event()
        self._poll_idle.set()
        self._closed = False
        self._error_count = 0
        self._eco_editable = True
        self._suppress_settings_update = False
        self._pending_command: PendingCommand | None = None
        self.last_command_check: CommandCheck | None = None
        self._faults = ErrorStateMachine()
        self._pellets = PelletInventory(host, on_change=self._on_pellets_changed)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> StoveDevice:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def start(self, *, poll: bool = True) -> None:
        """Apply settings, restore pellets, migrate capabilities and start polling.

        With ``poll=False`` no timer is scheduled; passes run only when
        :meth:`poll_status` is awaited or a command is sent.
        """
        self._closed = False
        config = StoveConfig.from_settings(self._host.get_settings())
        await self._apply_connection(config)
        self._pellets.set_auto_reset(config.pellets_auto_reset)
        await self._pellets.set_max_kg(config.pellets_max_kg)
        self._pellets.restore(config.pellets_kg)

        await migrate_capabilities(self._host)
        await self._update_pellets_capability_max()
        remaining = self._pellets.remaining_kg
        if remaining is not None:
            await self._publish("stove_pellets", remaining)

        _logger.info("Pellet stove device %s initialized", self._host.name)
        if poll:
            self.start_polling()

    async def stop(self) -> None:
        """Cancel the poll timer; a pass already in flight is allowed to finish."""
        self._closed = True
        self.stop_polling()
        if self._poll_tasks:
            await asyncio.gather(*self._poll_tasks, return_exceptions=True)
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None
        _logger.info("Pellet stove device %s stopped", self._host.name)

    async def _apply_connection(self, config: StoveConfig) -> None:
        self._config = config
        self._poll_interval = config.poll_interval
        if self._client is None:
            self._client = StoveClient.from_config(config)
            await self._client.__aenter__()
        else:
            self._client.set_config(config.resolved_address, config.pin)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def client(self) -> StoveClient | None:
        return self._client

    @property
    def pellets(self) -> PelletInventory:
        return self._pellets

    @property
    def faults(self) -> ErrorStateMachine:
        return self._faults

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def eco_editable(self) -> bool:
        return self._eco_editable

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def is_polling(self) -> bool:
        """Whether a timer for the next pass is pending."""
        return self._poll_handle is not None

    @property
    def pending_command(self) -> PendingCommand | None:
        pending = self._pending_command
        if pending is not None and self._clock() - pending.issued_at > self._echo_window:
            self._pending_command = None
            return None
        return pending

    # ------------------------------------------------------------------
    # Poll scheduling
    # ------------------------------------------------------------------

    def start_polling(self) -> None:
        """Cancel any pending timer and schedule an immediate pass."""
        self._schedule_next_poll(0)

    def stop_polling(self) -> None:
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None

    def _schedule_next_poll(self, delay: float) -> None:
        self.stop_polling()
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        self._poll_handle = loop.call_later(max(0.0, delay), self._on_poll_timer)

    def _on_poll_timer(self) -> None:
        self._poll_handle = None
        task = asyncio.create_task(self.poll_status())
        self._poll_tasks.add(task)
        task.add_done_callback(self._poll_tasks.discard)

    async def poll_status(self) -> bool:
        """Run one reconciliation pass.

        Returns ``False`` when the pass was declined because another one is
        in flight (or no client exists). Failures never propagate: the device
        is marked unavailable and the next pass follows at the normal interval.
        """
        client = self._client
        if client is None:
            return False
        if not self._poll_idle.is_set():
            _logger.debug("Poll already in flight; skipping")
            return False
        self._poll_idle.clear()

        try:
            if not client.address.strip():
                await self._call_host("set unavailable", self._host.set_unavailable("Missing device address"))
                return True

            status = await client.fetch_status()
            await self.apply_status(status)
            self._error_count = 0
            await self._call_host("set available", self._host.set_available())
        except Exception as exc:
            self._error_count += 1
            _logger.warning("Polling failed (%d): %s", self._error_count, exc)
            _logger.debug("Polling failure details", exc_info=True)
            await self._call_host("set unavailable", self._host.set_unavailable("Unable to reach device"))
        finally:
            self._poll_idle.set()
            self._schedule_next_poll(self._poll_interval)
        return True

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def apply_status(self, status: StatusDocument) -> dict[str, Any]:
        """Reconcile one status document and return its flattened form."""
        flat = flatten(status)

        eco_editable = coerce_boolean(flat.get("meta.eco_editable"))
        if eco_editable is not None:
            self._eco_editable = eco_editable

        await self._apply_error_state(flat)
        await self._update_meta_settings(flat)

        consumption = coerce_number(flat.get("consumption"))
        if consumption is not None:
            await self._pellets.on_consumption_report(consumption)

        for state_key, capability_id in STATE_TO_CAPABILITY.items():
            if state_key not in flat:
                continue
            value = coerce_value(capability_id, flat[state_key])
            if value is None:
                continue
            await self._publish(capability_id, value)

        self._check_pending_command(flat)
        return flat

    async def _apply_error_state(self, flat: Mapping[str, Any]) -> FaultUpdate:
        update = self._faults.reconcile(flat)

        if not update.faulted:
            self._pellets.release_hold()
            await self._publish("stove_error", NO_ERROR_TEXT)
            await self._publish("stove_error_state", False)
            if update.transition is FaultTransition.CLEARED:
                _logger.info("Stove fault cleared")
                await self._call_host("unset warning", self._host.unset_warning())
            return update

        code = update.code or ""
        message = update.message or code

        # Hopper faults zero the estimate on entry only; a manual override during the fault stands.
        if update.notify:
            if update.hopper_empty:
                await self._pellets.force_empty()
            else:
                self._pellets.release_hold()

        await self._publish("stove_error", code)
        await self._publish("stove_error_state", True)

        if update.notify:
            _logger.warning("Stove reported fault %s", message)
            await self._call_host("set warning", self._host.set_warning(message))
            excerpt = f"{self._host.name}: {message}"
            await self._call_host("create notification", self._host.create_notification(excerpt))
            await self._fire(error_trigger(code, message))
        elif update.transition is FaultTransition.MESSAGE_REFRESHED:
            await self._call_host("set warning", self._host.set_warning(message))
        return update

    async def _update_meta_settings(self, flat: Mapping[str, Any]) -> None:
        updates = DeviceInfo.from_flat(flat).settings_updates(self._host.get_settings())
        if updates:
            await self._update_settings_safely(updates)

    def _check_pending_command(self, flat: Mapping[str, Any]) -> CommandCheck | None:
        pending = self._pending_command
        if pending is None:
            return None
        self._pending_command = None

        if self._clock() - pending.issued_at > self._echo_window:
            check = CommandCheck(payload=pending.payload, expired=True)
            _logger.debug("Command %s expired before read-back", pending.payload)
        else:
            confirmed = [
                key for key, expected in pending.payload.items() if command_value_matches(expected, flat.get(key))
            ]
            mismatched = {key: flat.get(key) for key in pending.payload if key not in confirmed}
            check = CommandCheck(payload=pending.payload, confirmed=confirmed, mismatched=mismatched)
            if check.matched:
                _logger.info("Command confirmed by stove: %s", pending.payload)
            else:
                _logger.warning(
                    "Command not reflected by stove: sent %s, reported %s",
                    {key: pending.payload[key] for key in mismatched},
                    mismatched,
                )

        self.last_command_check = check
        return check

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    async def _publish(self, capability_id: str, value: Any) -> bool:
        """Write *value* if it differs from the current capability value."""
        host = self._host
        if not host.has_capability(capability_id):
            return False
        current = host.get_capability_value(capability_id)
        if values_equal(current, value):
            return False
        try:
            await host.set_capability_value(capability_id, value)
        except Exception:
            _logger.error("Failed to update capability %s", capability_id, exc_info=True)
            return False

        if current is not None:
            event = capability_trigger(capability_id, value)
            if event is not None:
                await self._fire(event)
        return True

    async def _fire(self, event: TriggerEvent) -> None:
        try:
            await self._host.trigger(event.trigger, event.tokens)
        except Exception:
            _logger.error("Failed to fire flow trigger %s", event.trigger, exc_info=True)

    async def _call_host(self, what: str, call: Awaitable[Any]) -> None:
        try:
            await call
        except Exception:
            _logger.error("Failed to %s", what, exc_info=True)

    async def _update_settings_safely(self, updates: Mapping[str, Any]) -> None:
        self._suppress_settings_update = True
        try:
            await self._host.set_settings(updates)
        except Exception:
            _logger.error("Failed to update settings %s", sorted(updates), exc_info=True)
        finally:
            self._suppress_settings_update = False

    async def _on_pellets_changed(self, remaining_kg: float) -> None:
        await self._publish("stove_pellets", remaining_kg)
        current = coerce_number(self._host.get_settings().get("pellets_kg"))
        if current is not None and abs(current - remaining_kg) < 0.01:
            return
        await self._update_settings_safely({"pellets_kg": remaining_kg})

    async def _update_pellets_capability_max(self) -> None:
        if not self._host.has_capability("stove_pellets"):
            return
        try:
            await self._host.set_capability_options("stove_pellets", {"max": self._pellets.state.max_kg})
        except Exception:
            _logger.error("Failed to update pellets capability max", exc_info=True)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def on_settings(self, new_settings: Mapping[str, Any], changed_keys: Collection[str]) -> None:
        """React to operator settings changes (ignored while the device writes settings itself)."""
        if not changed_keys or self._suppress_settings_update:
            return

        config = StoveConfig.from_settings(new_settings)
        changed = set(changed_keys)

        if changed & _CONNECTION_KEYS:
            await self._apply_connection(config)
            self.start_polling()

        if "pellets_auto_reset" in changed:
            self._pellets.set_auto_reset(config.pellets_auto_reset)

        if "pellets_max_kg" in changed:
            await self._pellets.set_max_kg(config.pellets_max_kg)
            await self._update_pellets_capability_max()

        if "pellets_kg" in changed:
            await self._pellets.on_manual_override(new_settings.get("pellets_kg"))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def set_on_off(self, value: Any) -> None:
        normalized = coerce_boolean(value)
        if normalized is None:
            raise StoveValidationError(f"Invalid on/off value: {value!r}")
        await self._send_command({"prg": normalized})

    async def set_target_temperature(self, value: Any) -> None:
        if self._host.get_capability_value("stove_weekprogram_active") is True:
            raise StoveGuardViolation("Weekly program is active")
        normalized = coerce_number(value)
        if normalized is None:
            raise StoveValidationError(f"Invalid target temperature: {value!r}")
        await self._send_command({"sp_temp": _wire_number(normalized)})

    async def set_eco_mode(self, value: Any) -> None:
        if not self._eco_editable:
            raise StoveGuardViolation("Eco mode is not editable")
        normalized = coerce_boolean(value)
        if normalized is None:
            raise StoveValidationError(f"Invalid eco mode value: {value!r}")
        await self._send_command({"eco_mode": normalized})

    async def set_weekly_program(self, value: Any) -> None:
        normalized = coerce_boolean(value)
        if normalized is None:
            raise StoveValidationError(f"Invalid weekly program value: {value!r}")
        await self._send_command({"wprg": normalized})

    async def set_pellets(self, value: Any) -> float:
        return await self._pellets.on_manual_override(value)

    # Flow action cards

    async def set_pellets_from_flow(self, pellets_kg: Any) -> float:
        return await self.set_pellets(pellets_kg)

    async def set_weekly_program_from_flow(self, enabled: Any) -> None:
        await self.set_weekly_program(enabled)

    async def set_eco_mode_from_flow(self, mode: Any) -> None:
        await self.set_eco_mode(mode)

    async def on_capability_value(self, capability_id: str, value: Any) -> None:
        """Route a user-initiated capability change to its command handler."""
        handlers: dict[str, Callable[[Any], Awaitable[Any]]] = {
            "onoff": self.set_on_off,
            "target_temperature": self.set_target_temperature,
            "stove_eco_mode": self.set_eco_mode,
            "stove_weekprogram_active": self.set_weekly_program,
            "stove_pellets": self.set_pellets,
        }
        handler = handlers.get(capability_id)
        if handler is None:
            raise StoveValidationError(f"Capability {capability_id} is read-only")
        await handler(value)

    async def _send_command(self, payload: dict[str, Any]) -> None:
        client = self._client
        if client is None:
            raise StoveConfigError("Device not configured")
        if not client.address.strip():
            raise StoveConfigError("Missing device address")

        # A pass already in flight fetched its status before this POST.
        self.stop_polling()
        await self._poll_idle.wait()
        self.stop_polling()
        try:
            await client.send_command(payload)
        except Exception:
            self._schedule_next_poll(self._poll_interval)
            raise

        self._pending_command = PendingCommand(payload=payload, issued_at=self._clock())
        await self.poll_status()
