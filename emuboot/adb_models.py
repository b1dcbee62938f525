"""
ADB Data Models Module
Data classes and exceptions for device-bridge related types.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Iterator, Optional


class DeviceState(str, Enum):
    """Connection state reported by `adb devices`."""
    DEVICE = "device"
    OFFLINE = "offline"
    UNAUTHORIZED = "unauthorized"
    OTHER = "other"

    @classmethod
    def parse(cls, token: str) -> "DeviceState":
        """Map a raw state token to a DeviceState, OTHER for anything unknown."""
        token = token.strip().lower()
        for state in cls:
            if state.value == token:
                return state
        return cls.OTHER


class DeviceSnapshot(Mapping):
    """
    Immutable serial -> DeviceState mapping taken from one device listing.

    Snapshots are produced fresh on every query and never mutated, so a
    baseline can be shared between threads without copying.
    """

    def __init__(self, devices: Optional[Mapping] = None):
        self._devices: dict[str, DeviceState] = {
            serial: state if isinstance(state, DeviceState) else DeviceState.parse(state)
            for serial, state in (devices or {}).items()
        }

    def __getitem__(self, serial: str) -> DeviceState:
        return self._devices[serial]

    def __iter__(self) -> Iterator[str]:
        return iter(self._devices)

    def __len__(self) -> int:
        return len(self._devices)

    def __repr__(self) -> str:
        items = ", ".join(f"{serial}: {state.value}" for serial, state in sorted(self._devices.items()))
        return f"DeviceSnapshot({{{items}}})"


class ADBError(Exception):
    """Exception raised for ADB-related errors."""
    pass


class QueryError(ADBError):
    """Exception raised when the device list cannot be obtained."""
    pass


class BridgeError(ADBError):
    """Exception raised when the adb server cannot be started or stopped."""
    pass
