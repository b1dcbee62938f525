"""
Boot Supervisor Module
Drives emulator boot attempts until a new device is ready, the attempt
budget is spent or the deadline passes.

Each attempt races four event sources on a private queue: process exit,
the first fault line in the emulator log, a new device reaching the
`device` state, and the overall deadline (the queue timeout).
"""

import logging
import queue
import threading
import time
from typing import Callable, Iterable, Optional

from rich.console import Console

from .adb import AdbServer, DeviceRegistry, find_new_device
from .adb_models import BridgeError, DeviceSnapshot, DeviceState, QueryError
from .faults import FaultScanner
from .models import (
    EVENT_PRIORITY,
    BootAttempt,
    BootEvent,
    BootOutcome,
    Booted,
    EventKind,
    Failed,
    FailureReason,
)
from .monitor import OutputMonitor
from .process import EmulatorProcess, ProcessStartError
from .utils import format_duration

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_RESTART_BRIDGE_EVERY = 10


def select_event(events: Iterable[BootEvent]) -> Optional[BootEvent]:
    """
    Pick the winner among events pending at the same time.

    Faults beat process exit, which beats a ready device; within one
    kind the earliest event wins.
    """
    return min(events, key=lambda event: EVENT_PRIORITY[event.kind], default=None)


class DevicePoller:
    """
    Periodically looks for a new emulator serial absent from the baseline.

    Posts a READY event once the tracked serial reports `device`. Query
    errors restart the adb server and polling goes on; so does a restart
    every `restart_bridge_every` unsuccessful polls.
    """

    def __init__(
        self,
        attempt: int,
        registry: DeviceRegistry,
        bridge: AdbServer,
        baseline: DeviceSnapshot,
        events: queue.Queue,
        interval: float = DEFAULT_POLL_INTERVAL,
        restart_bridge_every: int = DEFAULT_RESTART_BRIDGE_EVERY,
        reset_poll_counter_on_query_error: bool = True
    ):
        self.attempt = attempt
        self.registry = registry
        self.bridge = bridge
        self.baseline = baseline
        self.events = events
        self.interval = interval
        self.restart_bridge_every = restart_bridge_every
        self.reset_poll_counter_on_query_error = reset_poll_counter_on_query_error
        self.unsuccessful_polls = 0
        self.tracked_serial: Optional[str] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        self._thread = threading.Thread(
            target=self._run,
            name=f"device-poller-{self.attempt}",
            daemon=True
        )
        self._thread.start()

    def stop(self):
        """Stop polling and wait for an in-flight poll to finish."""
        self._stop.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join()

    def _run(self):
        while not self._stop.wait(self.interval):
            if self.poll_once():
                return

    def _restart_bridge(self):
        # No restart may begin after stop().
        if self._stop.is_set():
            return
        try:
            self.bridge.restart()
        except BridgeError as e:
            logger.warning("Failed to restart adb server: %s", e)

    def _recover_from_query_error(self) -> bool:
        logger.warning("Restarting adb server and retrying")
        self._restart_bridge()
        if self.reset_poll_counter_on_query_error:
            self.unsuccessful_polls = 0
        return False

    def _query(self) -> tuple[Optional[str], Optional[DeviceState]]:
        if self.tracked_serial is None:
            return self.registry.find_new_device(self.baseline)

        current = self.registry.snapshot()
        if self.tracked_serial in current:
            return self.tracked_serial, current[self.tracked_serial]

        logger.warning("Emulator %s disappeared from the device list", self.tracked_serial)
        self.tracked_serial = None
        return find_new_device(self.baseline, current)

    def poll_once(self) -> bool:
        """Run one poll; True once a ready device was reported."""
        self.unsuccessful_polls += 1
        if self.restart_bridge_every and self.unsuccessful_polls % self.restart_bridge_every == 0:
            logger.warning("No ready emulator after %d polls, restarting adb server", self.unsuccessful_polls)
            self._restart_bridge()

        try:
            serial, state = self._query()
        except QueryError as e:
            logger.warning("Failed to query new emulator: %s", e)
            return self._recover_from_query_error()
        except Exception:
            logger.exception("Unexpected error while querying new emulator")
            return self._recover_from_query_error()

        if serial is None:
            logger.info("New emulator not found yet")
            return False

        self.tracked_serial = serial
        logger.info("New emulator found: %s, state: %s", serial, state.value)
        if state is not DeviceState.DEVICE:
            return False

        # A stop() issued while this poll ran wins over its result.
        if self._stop.is_set():
            return True

        self.events.put(BootEvent(EventKind.READY, self.attempt, serial=serial))
        return True


class BootSupervisor:
    """
    Boots one emulator with bounded retries.

    The baseline snapshot is shared unchanged by every attempt. A fault
    or an unexpected exit kills the process and starts a new attempt
    unless the budget or the deadline is exhausted. On success the
    process is left running and handed to the caller in `Booted`.
    """

    def __init__(
        self,
        emulator_path: str,
        args: list[str],
        baseline: DeviceSnapshot,
        timeout: float,
        registry: DeviceRegistry,
        bridge: AdbServer,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        restart_bridge_every: int = DEFAULT_RESTART_BRIDGE_EVERY,
        reset_poll_counter_on_query_error: bool = True,
        scanner: Optional[FaultScanner] = None,
        process_factory: Callable[[], EmulatorProcess] = EmulatorProcess,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.emulator_path = emulator_path
        self.args = list(args)
        self.baseline = baseline
        self.timeout = timeout
        self.registry = registry
        self.bridge = bridge
        self.max_attempts = max_attempts
        self.poll_interval = poll_interval
        self.restart_bridge_every = restart_bridge_every
        self.reset_poll_counter_on_query_error = reset_poll_counter_on_query_error
        self.scanner = scanner or FaultScanner()
        self.process_factory = process_factory
        self.console = console
        self.err_console = err_console
        self.clock = clock

    def run(self) -> BootOutcome:
        started = self.clock()
        deadline = started + self.timeout
        last_log = ""

        for index in range(1, self.max_attempts + 1):
            if self.clock() >= deadline:
                return self._timeout(index - 1, last_log, started)

            logger.info("Starting emulator (attempt %d/%d)", index, self.max_attempts)
            attempt = BootAttempt(index=index, started_at=self.clock())
            events: queue.Queue = queue.Queue()

            monitor = OutputMonitor(
                attempt,
                self.scanner,
                on_fault=lambda line, i=index: events.put(BootEvent(EventKind.FAULT, i, line=line)),
                console=self.console,
                err_console=self.err_console
            )
            process = self.process_factory()
            attempt.process = process

            try:
                process.start(
                    self.emulator_path,
                    self.args,
                    line_sink=monitor.feed,
                    exit_sink=lambda code, i=index: events.put(BootEvent(EventKind.EXITED, i, returncode=code))
                )
            except ProcessStartError as e:
                logger.error("%s", e)
                monitor.close()
                return Failed(
                    FailureReason.START_ERROR,
                    str(e),
                    log=attempt.log_text(),
                    attempts=index,
                    elapsed=self.clock() - started
                )

            poller = DevicePoller(
                index,
                self.registry,
                self.bridge,
                self.baseline,
                events,
                interval=self.poll_interval,
                restart_bridge_every=self.restart_bridge_every,
                reset_poll_counter_on_query_error=self.reset_poll_counter_on_query_error
            )
            poller.start()

            try:
                event = self._wait_for_event(events, deadline)
            except BaseException:
                # The emulator runs in its own session, so Ctrl-C does not reach it.
                process.kill()
                process.detach()
                raise
            finally:
                poller.stop()
                monitor.close()

            last_log = attempt.log_text()

            if event is None:
                process.kill()
                process.detach()
                return self._timeout(index, last_log, started)

            if event.kind is EventKind.READY:
                process.detach()
                elapsed = self.clock() - started
                logger.info("Emulator %s booted in %s", event.serial, format_duration(elapsed))
                return Booted(serial=event.serial, process=process, attempts=index, elapsed=elapsed)

            if event.kind is EventKind.FAULT:
                logger.warning("Emulator start failed: %s", event.line)
                reason = FailureReason.FAULT_EXHAUSTED
            else:
                logger.warning("Emulator exited unexpectedly (code %s)", event.returncode)
                reason = FailureReason.PROCESS_EXITED

            process.kill()
            process.detach()
            logger.debug("Emulator log (attempt %d):\n%s", index, last_log)

            if self.clock() >= deadline:
                return self._timeout(index, last_log, started)

            if index == self.max_attempts:
                detail = (
                    f"Failed to boot device due to faults after {index} tries"
                    if reason is FailureReason.FAULT_EXHAUSTED
                    else f"Emulator exited unexpectedly on all {index} tries"
                )
                logger.error(detail)
                return Failed(reason, detail, log=last_log, attempts=index, elapsed=self.clock() - started)

            logger.warning("Restarting emulator...")

        raise AssertionError("boot loop ended without an outcome")

    def _wait_for_event(self, events: queue.Queue, deadline: float) -> Optional[BootEvent]:
        """Block until the first event or the deadline; None means timeout."""
        remaining = deadline - self.clock()
        if remaining <= 0:
            return None

        try:
            pending = [events.get(timeout=remaining)]
        except queue.Empty:
            return None

        while True:
            try:
                pending.append(events.get_nowait())
            except queue.Empty:
                break

        return select_event(pending)

    def _timeout(self, attempts: int, log: str, started: float) -> Failed:
        detail = f"Failed to boot emulator device within {format_duration(self.timeout)}"
        logger.error(detail)
        return Failed(FailureReason.TIMEOUT, detail, log=log, attempts=attempts, elapsed=self.clock() - started)
