"""
ADB Wrapper Module
Handles the device-bridge side of an emulator boot: listing devices
and keeping the adb server alive.
"""

import logging
import re
import subprocess
from typing import Optional

from .adb_models import ADBError, BridgeError, DeviceSnapshot, DeviceState, QueryError

logger = logging.getLogger(__name__)

# List of devices attached
# emulator-5554	device
DEVICE_LINE_PATTERN = re.compile(r"^(?P<serial>emulator-\d+)\s+(?P<state>\S+)")


def check_adb_available(adb_path: str = "adb") -> bool:
    """Check if ADB is installed and runnable."""
    try:
        result = subprocess.run(
            [adb_path, "version"],
            capture_output=True,
            text=True,
            errors="replace",
            timeout=5
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, OSError):
        return False


def run_adb(adb_path: str, args: list[str], timeout: float = 10) -> str:
    """
    Run an adb command and return its combined, trimmed output.

    Raises:
        ADBError: If adb is missing, times out or exits non-zero.
    """
    cmd = [adb_path, *args]
    logger.debug("$ %s", " ".join(cmd))

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout
        )
    except subprocess.TimeoutExpired:
        raise ADBError(f"ADB command timed out: {' '.join(args)}")
    except OSError as e:
        raise ADBError(f"ADB could not be executed ({adb_path}): {e}")

    output = (result.stdout + result.stderr).strip()
    if result.returncode != 0:
        raise ADBError(f"ADB command failed ({' '.join(args)}): {output}")

    return output


def parse_devices_output(output: str) -> DeviceSnapshot:
    """
    Parse `adb devices` output into a snapshot.

    Only emulator serials are kept. Headers, daemon notices, physical
    devices and malformed lines are skipped.
    """
    devices = {}
    for line in output.splitlines():
        match = DEVICE_LINE_PATTERN.match(line.strip())
        if not match:
            continue
        devices[match.group("serial")] = DeviceState.parse(match.group("state"))

    return DeviceSnapshot(devices)


def find_new_device(baseline: DeviceSnapshot, current: DeviceSnapshot) -> tuple[Optional[str], Optional[DeviceState]]:
    """
    Find a serial present in `current` but not in `baseline`.

    Returns:
        Tuple of (serial, state), or (None, None) if nothing new appeared.
        With several new serials the smallest one is returned.
    """
    new_serials = sorted(serial for serial in current if serial not in baseline)
    if not new_serials:
        return None, None

    serial = new_serials[0]
    return serial, current[serial]


class DeviceRegistry:
    """Reads the emulator device list through the adb client."""

    def __init__(self, adb_path: str = "adb", timeout: float = 10):
        self.adb_path = adb_path
        self.timeout = timeout

    def snapshot(self) -> DeviceSnapshot:
        """
        Take a fresh snapshot of attached emulators.

        Raises:
            QueryError: If the listing command fails.
        """
        try:
            output = run_adb(self.adb_path, ["devices"], timeout=self.timeout)
        except ADBError as e:
            raise QueryError(f"Failed to list devices: {e}") from e

        logger.debug("adb devices:\n%s", output)
        return parse_devices_output(output)

    def find_new_device(self, baseline: DeviceSnapshot) -> tuple[Optional[str], Optional[DeviceState]]:
        """Query the device list and return the first serial absent from `baseline`."""
        return find_new_device(baseline, self.snapshot())


class AdbServer:
    """Start, stop and restart the adb background server."""

    def __init__(self, adb_path: str = "adb", timeout: float = 10):
        self.adb_path = adb_path
        self.timeout = timeout

    def _run(self, command: str):
        try:
            output = run_adb(self.adb_path, [command], timeout=self.timeout)
        except ADBError as e:
            raise BridgeError(str(e)) from e
        if output:
            logger.debug(output)

    def start(self):
        """Start the adb server (no-op if it is already running)."""
        logger.info("Starting adb server")
        self._run("start-server")

    def stop(self):
        """Kill the adb server."""
        logger.info("Stopping adb server")
        self._run("kill-server")

    def restart(self):
        """Stop then start the server; a failed stop aborts the restart."""
        self.stop()
        self.start()
