"""
Emulator Process Module
Launches the emulator binary and streams its output line by line.
"""

import logging
import os
import signal
import subprocess
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

STDOUT = "stdout"
STDERR = "stderr"

LineSink = Callable[[str, str], None]
ExitSink = Callable[[int], None]


class ProcessStartError(Exception):
    """Exception raised when the emulator binary cannot be launched."""
    pass


class EmulatorProcess:
    """
    Handle to a running emulator.

    The process is started in its own session so it survives the
    supervisor. One daemon thread per stream keeps reading until EOF for
    the whole lifetime of the process, so the emulator never blocks on a
    full pipe even after sinks are detached. A watcher thread sets
    `exited` exactly once when the process terminates.
    """

    def __init__(self, drain_timeout: float = 5.0):
        self.drain_timeout = drain_timeout
        self.exited = threading.Event()
        self._popen: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()
        self._line_sink: Optional[LineSink] = None
        self._exit_sink: Optional[ExitSink] = None
        self._pumps: list[threading.Thread] = []
        self._watcher: Optional[threading.Thread] = None

    @property
    def pid(self) -> Optional[int]:
        return self._popen.pid if self._popen else None

    @property
    def returncode(self) -> Optional[int]:
        return self._popen.returncode if self._popen else None

    def is_running(self) -> bool:
        return self._popen is not None and not self.exited.is_set()

    def start(
        self,
        path: str,
        args: list[str],
        line_sink: Optional[LineSink] = None,
        exit_sink: Optional[ExitSink] = None
    ):
        """
        Launch `path` with `args`.

        Args:
            path: Emulator binary.
            args: Command line arguments.
            line_sink: Called as sink(stream, line) for every output line.
            exit_sink: Called once with the return code when the process ends.

        Raises:
            ProcessStartError: If the binary cannot be executed.
        """
        if self._popen is not None:
            raise ProcessStartError("Emulator process already started")

        self._line_sink = line_sink
        self._exit_sink = exit_sink

        logger.info("$ %s", " ".join([path, *args]))
        try:
            self._popen = subprocess.Popen(
                [path, *args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                start_new_session=True
            )
        except (OSError, ValueError) as e:
            raise ProcessStartError(f"Failed to run emulator ({path}): {e}") from e

        for name, stream in ((STDOUT, self._popen.stdout), (STDERR, self._popen.stderr)):
            pump = threading.Thread(
                target=self._pump,
                args=(name, stream),
                name=f"emulator-{name}-{self._popen.pid}",
                daemon=True
            )
            pump.start()
            self._pumps.append(pump)

        self._watcher = threading.Thread(
            target=self._watch,
            name=f"emulator-exit-{self._popen.pid}",
            daemon=True
        )
        self._watcher.start()

    def _pump(self, name: str, stream):
        for line in iter(stream.readline, ""):
            with self._lock:
                sink = self._line_sink
                if sink:
                    sink(name, line.rstrip("\r\n"))
        stream.close()

    def _watch(self):
        returncode = self._popen.wait()

        # Let the pumps flush the final lines before reporting the exit.
        for pump in self._pumps:
            pump.join(self.drain_timeout)

        logger.debug("Emulator process %s exited with code %s", self._popen.pid, returncode)
        self.exited.set()

        with self._lock:
            sink = self._exit_sink
            if sink:
                sink(returncode)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the process to exit; True if it has."""
        return self.exited.wait(timeout)

    def detach(self):
        """Stop delivering lines and exit notifications; draining continues."""
        with self._lock:
            self._line_sink = None
            self._exit_sink = None

    def kill(self, timeout: float = 10.0):
        """Force-kill the emulator and its children. Safe to call repeatedly."""
        if self._popen is None or self._popen.poll() is not None:
            return

        logger.info("Killing emulator process %s", self._popen.pid)
        try:
            if hasattr(os, "killpg"):
                os.killpg(self._popen.pid, signal.SIGKILL)
            else:
                self._popen.kill()
        except ProcessLookupError:
            logger.debug("Emulator process %s already gone", self._popen.pid)

        try:
            self._popen.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Emulator process %s did not exit after kill", self._popen.pid)
            return

        self.exited.wait(timeout)
