"""
Emulator Module
Launch policy, SDK tool locations and the end-to-end boot entry point.
"""

import logging
import os
import subprocess
from typing import Callable, Optional

from rich.console import Console

from .adb import AdbServer, DeviceRegistry
from .adb_models import BridgeError, QueryError
from .config import DEFAULT_GPU, BootSettings
from .models import BootOutcome, Failed, FailureReason
from .process import EmulatorProcess
from .supervisor import BootSupervisor

logger = logging.getLogger(__name__)


def emulator_binary_path(android_home: Optional[str]) -> str:
    if not android_home:
        return "emulator"
    return os.path.join(android_home, "emulator", "emulator")


def adb_binary_path(android_home: Optional[str]) -> str:
    if not android_home:
        return "adb"
    return os.path.join(android_home, "platform-tools", "adb")


def build_launch_args(
    avd_name: str,
    extra_flags: Optional[list[str]] = None,
    headless: bool = True,
    wipe_data: bool = True,
    snapshot: bool = False,
    gpu: Optional[str] = DEFAULT_GPU,
    verbose: bool = True
) -> list[str]:
    """
    Build the emulator command line for a CI boot.

    Args:
        avd_name: AVD to start, passed as `@<name>`.
        extra_flags: User flags appended last so they can override defaults.
        headless: Run without window, audio and boot animation.
        wipe_data: Start from a clean userdata image.
        snapshot: Allow quick-boot snapshots.
        gpu: GPU backend, None to let the emulator choose.
        verbose: Emit kernel and verbose logs (needed for fault detection).
    """
    args = [f"@{avd_name}"]
    if verbose:
        args += ["-verbose", "-show-kernel"]
    if headless:
        args += ["-no-audio", "-no-window", "-no-boot-anim"]
    args += ["-netdelay", "none"]
    if not snapshot:
        args.append("-no-snapshot")
    if wipe_data:
        args.append("-wipe-data")
    if gpu:
        args += ["-gpu", gpu]
    return args + list(extra_flags or [])


def emulator_version(emulator_path: str) -> Optional[str]:
    """Return the first line of `emulator -version`, None if it cannot be read."""
    try:
        result = subprocess.run(
            [emulator_path, "-version"],
            capture_output=True,
            text=True,
            timeout=30
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.warning("Failed to print emulator version: %s", e)
        return None

    if result.returncode != 0:
        logger.warning("Failed to print emulator version: %s", result.stderr.strip())
        return None

    lines = result.stdout.strip().splitlines()
    return lines[0] if lines else None


def boot_emulator(
    settings: BootSettings,
    registry: Optional[DeviceRegistry] = None,
    bridge: Optional[AdbServer] = None,
    process_factory: Callable[[], EmulatorProcess] = EmulatorProcess,
    console: Optional[Console] = None,
    err_console: Optional[Console] = None
) -> BootOutcome:
    """
    Boot the AVD described by `settings` and return the outcome.

    Makes sure the adb server is up, records which emulators already run
    and hands over to BootSupervisor.
    """
    adb_path = adb_binary_path(settings.android_home)
    registry = registry or DeviceRegistry(adb_path)
    bridge = bridge or AdbServer(adb_path)

    try:
        bridge.start()
    except BridgeError as e:
        logger.warning("Failed to start adb server: %s", e)
        logger.warning("Restarting adb server...")
        try:
            bridge.restart()
        except BridgeError as e:
            return Failed(FailureReason.QUERY_ERROR, f"Failed to restart adb server: {e}")

    try:
        baseline = registry.snapshot()
    except QueryError as e:
        return Failed(FailureReason.QUERY_ERROR, f"Failed to check running devices: {e}")

    if baseline:
        logger.info("Already running emulators: %s", ", ".join(sorted(baseline)))

    args = build_launch_args(
        settings.avd_name,
        settings.start_flags,
        headless=settings.headless,
        wipe_data=settings.wipe_data,
        snapshot=settings.snapshot,
        gpu=settings.gpu
    )

    supervisor = BootSupervisor(
        emulator_binary_path(settings.android_home),
        args,
        baseline,
        settings.timeout,
        registry,
        bridge,
        max_attempts=settings.max_attempts,
        poll_interval=settings.poll_interval,
        restart_bridge_every=settings.restart_bridge_every,
        process_factory=process_factory,
        console=console,
        err_console=err_console
    )
    return supervisor.run()
