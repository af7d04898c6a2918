"""pyhaassohn - Async state synchronization engine for Haas+Sohn pellet stoves."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyhaassohn")
except PackageNotFoundError:
    __version__ = "0+local"
from pyhaassohn.client import StoveClient, check_connection
from pyhaassohn.config import PelletsAutoResetMode, StoveConfig
from pyhaassohn.device import StoveDevice
from pyhaassohn.exceptions import (
    StoveConfigError,
    StoveError,
    StoveGuardViolation,
    StoveProtocolError,
    StoveTransportError,
    StoveValidationError,
)
from pyhaassohn.models import CommandCheck, ConnectionTestResult, DeviceInfo, PendingCommand
from pyhaassohn.platform import DeviceHost, InMemoryHost
from pyhaassohn.state.events import FlowTrigger, TriggerEvent
from pyhaassohn.state.faults import ErrorStateMachine, FaultTransition
from pyhaassohn.state.pellets import PelletInventory

__all__ = [
    "__version__",
    "CommandCheck",
    "ConnectionTestResult",
    "DeviceHost",
    "DeviceInfo",
    "ErrorStateMachine",
    "FaultTransition",
    "FlowTrigger",
    "InMemoryHost",
    "PelletInventory",
    "PelletsAutoResetMode",
    "PendingCommand",
    "StoveClient",
    "StoveConfig",
    "StoveConfigError",
    "StoveDevice",
    "StoveError",
    "StoveGuardViolation",
    "StoveProtocolError",
    "StoveTransportError",
    "StoveValidationError",
    "TriggerEvent",
    "check_connection",
]
