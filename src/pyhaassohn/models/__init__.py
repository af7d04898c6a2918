"""Typed models for stove data and command bookkeeping."""

from pyhaassohn.models.command import CommandCheck, ConnectionTestResult, PendingCommand
from pyhaassohn.models.device_info import DeviceInfo

__all__ = [
    "CommandCheck",
    "ConnectionTestResult",
    "DeviceInfo",
    "PendingCommand",
]
