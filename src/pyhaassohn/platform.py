"""Interfaces to the smart-home host, plus an in-memory implementation.

The reconciliation loop never talks to a concrete platform. It consumes the
structural protocols below; :class:`InMemoryHost` implements all of them and
backs the test-suite and the scripts.
"""

from __future__ import annotations

import copy
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from pyhaassohn.state.events import FlowTrigger, TriggerEvent


class CapabilityStore(Protocol):
    def has_capability(self, capability_id: str) -> bool: ...

    def get_capability_value(self, capability_id: str) -> Any: ...

    async def set_capability_value(self, capability_id: str, value: Any) -> None: ...

    async def add_capability(self, capability_id: str) -> None: ...

    async def remove_capability(self, capability_id: str) -> None: ...

    async def set_capability_options(self, capability_id: str, options: Mapping[str, Any]) -> None: ...


class DeviceStatusSink(Protocol):
    async def set_available(self) -> None: ...

    async def set_unavailable(self, reason: str) -> None: ...

    async def set_warning(self, message: str) -> None: ...

    async def unset_warning(self) -> None: ...


class SettingsStore(Protocol):
    def get_settings(self) -> dict[str, Any]: ...

    async def set_settings(self, updates: Mapping[str, Any]) -> None: ...


class DeviceStore(Protocol):
    """Key/value persistence that survives restarts."""

    def get_store_value(self, key: str) -> Any: ...

    async def set_store_value(self, key: str, value: Any) -> None: ...


class FlowDispatcher(Protocol):
    async def trigger(self, trigger: FlowTrigger, tokens: Mapping[str, Any]) -> None: ...


class NotificationSink(Protocol):
    async def create_notification(self, excerpt: str) -> None: ...


class DeviceHost(
    CapabilityStore,
    DeviceStatusSink,
    SettingsStore,
    DeviceStore,
    FlowDispatcher,
    NotificationSink,
    Protocol,
):
    """Everything a :class:`pyhaassohn.device.StoveDevice` needs from its host."""

    name: str


SettingsListener = Callable[[dict[str, Any], list[str]], Awaitable[Any]]


@dataclass
class InMemoryHost:
    """Dict-backed host that records every side effect.

    ``failing_capabilities`` makes writes to the named capabilities raise,
    which is how tests exercise per-field write isolation.
    ``settings_listener`` is invoked after :meth:`set_settings`, mimicking
    platforms that echo programmatic settings writes back to the device.
    """

    name: str = "Pellet stove"
    capabilities: dict[str, Any] = field(default_factory=dict)
    capability_options: dict[str, dict[str, Any]] = field(default_factory=dict)
    settings: dict[str, Any] = field(default_factory=dict)
    store: dict[str, Any] = field(default_factory=dict)
    available: bool | None = None
    unavailable_reason: str | None = None
    warning: str | None = None
    writes: list[tuple[str, Any]] = field(default_factory=list)
    triggers: list[TriggerEvent] = field(default_factory=list)
    notifications: list[str] = field(default_factory=list)
    failing_capabilities: set[str] = field(default_factory=set)
    settings_listener: SettingsListener | None = None

    # capabilities

    def has_capability(self, capability_id: str) -> bool:
        return capability_id in self.capabilities

    def get_capability_value(self, capability_id: str) -> Any:
        return self.capabilities.get(capability_id)

    async def set_capability_value(self, capability_id: str, value: Any) -> None:
        if capability_id in self.failing_capabilities:
            raise RuntimeError(f"capability {capability_id} rejected the write")
        if capability_id not in self.capabilities:
            raise KeyError(capability_id)
        self.capabilities[capability_id] = value
        self.writes.append((capability_id, value))

    async def add_capability(self, capability_id: str) -> None:
        self.capabilities.setdefault(capability_id, None)

    async def remove_capability(self, capability_id: str) -> None:
        self.capabilities.pop(capability_id, None)
        self.capability_options.pop(capability_id, None)

    async def set_capability_options(self, capability_id: str, options: Mapping[str, Any]) -> None:
        self.capability_options.setdefault(capability_id, {}).update(options)

    # availability / warnings

    async def set_available(self) -> None:
        self.available = True
        self.unavailable_reason = None

    async def set_unavailable(self, reason: str) -> None:
        self.available = False
        self.unavailable_reason = reason

    async def set_warning(self, message: str) -> None:
        self.warning = message

    async def unset_warning(self) -> None:
        self.warning = None

    # settings / store

    def get_settings(self) -> dict[str, Any]:
        return copy.deepcopy(self.settings)

    async def set_settings(self, updates: Mapping[str, Any]) -> None:
        self.settings.update(updates)
        if self.settings_listener is not None:
            await self.settings_listener(self.get_settings(), list(updates))

    def get_store_value(self, key: str) -> Any:
        return self.store.get(key)

    async def set_store_value(self, key: str, value: Any) -> None:
        self.store[key] = value

    # flows / notifications

    async def trigger(self, trigger: FlowTrigger, tokens: Mapping[str, Any]) -> None:
        self.triggers.append(TriggerEvent(trigger=trigger, tokens=dict(tokens)))

    async def create_notification(self, excerpt: str) -> None:
        self.notifications.append(excerpt)

    def fired(self, trigger: FlowTrigger) -> list[TriggerEvent]:
        return [event for event in self.triggers if event.trigger == trigger]
