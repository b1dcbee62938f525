"""
Configuration Module
Settings for one emulator boot request.
"""

import os
import shlex
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_TIMEOUT = 300.0
DEFAULT_GPU = "swiftshader_indirect"


def resolve_android_home(explicit: Optional[str] = None) -> Optional[str]:
    """Return the SDK root: explicit value, then ANDROID_HOME, then ANDROID_SDK_ROOT."""
    for candidate in (explicit, os.environ.get("ANDROID_HOME"), os.environ.get("ANDROID_SDK_ROOT")):
        if candidate:
            return os.path.expanduser(candidate)
    return None


def parse_flags(value: Optional[str]) -> list[str]:
    """Split a shell-quoted flag string, e.g. '-memory 2048 -camera-back none'."""
    if not value:
        return []
    return shlex.split(value)


@dataclass
class BootSettings:
    """Everything needed to boot one AVD."""
    avd_name: str
    android_home: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    max_attempts: int = 5
    poll_interval: float = 5.0
    start_flags: list[str] = field(default_factory=list)
    gpu: Optional[str] = DEFAULT_GPU
    headless: bool = True
    wipe_data: bool = True
    snapshot: bool = False
    restart_bridge_every: int = 10
    output_file: Optional[str] = None

    def validate(self):
        """Raise ValueError for settings that can never boot a device."""
        if not self.avd_name or not self.avd_name.strip():
            raise ValueError("AVD name must not be empty")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.restart_bridge_every < 0:
            raise ValueError(f"restart_bridge_every must not be negative, got {self.restart_bridge_every}")
