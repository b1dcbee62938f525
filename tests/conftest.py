"""Shared fakes and fixtures for the boot supervisor tests."""

import io
import sys
import threading
from pathlib import Path

import pytest
from rich.console import Console

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from emuboot.adb import DeviceRegistry
from emuboot.adb_models import BridgeError, DeviceSnapshot


class FakeProcess:
    """Scripted stand-in for EmulatorProcess."""

    def __init__(self, lines=(), exit_code=None, start_error=None, line_delay=0.005, on_emit=None):
        self.lines = list(lines)
        self.exit_code = exit_code
        self.start_error = start_error
        self.line_delay = line_delay
        self.on_emit = on_emit
        self.exited = threading.Event()
        self.returncode = None
        self.started_with = None
        self.kill_calls = 0
        self.detached = False
        self._killed = threading.Event()
        self._lock = threading.Lock()
        self._line_sink = None
        self._exit_sink = None
        self._thread = None

    def start(self, path, args, line_sink=None, exit_sink=None):
        if self.start_error:
            raise self.start_error
        self.started_with = (path, list(args))
        self._line_sink = line_sink
        self._exit_sink = exit_sink
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self):
        for stream, line in self.lines:
            if self._killed.wait(self.line_delay):
                return
            if self.on_emit:
                self.on_emit(line)
            with self._lock:
                if self._line_sink:
                    self._line_sink(stream, line)

        if self.exit_code is None or self._killed.is_set():
            return

        self.returncode = self.exit_code
        self.exited.set()
        with self._lock:
            if self._exit_sink:
                self._exit_sink(self.exit_code)

    def is_running(self):
        return self.started_with is not None and not self.exited.is_set()

    def wait(self, timeout=None):
        return self.exited.wait(timeout)

    def detach(self):
        with self._lock:
            self.detached = True
            self._line_sink = None
            self._exit_sink = None

    def kill(self, timeout=10.0):
        self.kill_calls += 1
        self._killed.set()
        if not self.exited.is_set():
            self.returncode = -9
            self.exited.set()


class FakeProcessFactory:
    """Creates a new FakeProcess per attempt from `build(attempt_index)`."""

    def __init__(self, build):
        self.build = build
        self.created = []

    def __call__(self):
        process = self.build(len(self.created) + 1)
        self.created.append(process)
        return process


class FakeRegistry(DeviceRegistry):
    """
    Device registry returning scripted results.

    Each result is a DeviceSnapshot, an exception to raise, or a callable
    producing either. The last result repeats forever.
    """

    def __init__(self, *results):
        super().__init__(adb_path="adb")
        self.results = list(results)
        self.calls = 0
        self._lock = threading.Lock()

    def snapshot(self):
        with self._lock:
            self.calls += 1
            result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if callable(result):
            result = result()
        if isinstance(result, Exception):
            raise result
        return result


class FakeBridge:
    """Counts adb server lifecycle calls."""

    def __init__(self, fail_start=False, fail_restart=False):
        self.fail_start = fail_start
        self.fail_restart = fail_restart
        self.starts = 0
        self.stops = 0
        self.restarts = 0

    def start(self):
        self.starts += 1
        if self.fail_start:
            raise BridgeError("cannot start server")

    def stop(self):
        self.stops += 1

    def restart(self):
        self.restarts += 1
        if self.fail_restart:
            raise BridgeError("cannot restart server")


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def baseline():
    return DeviceSnapshot({"emulator-5554": "device"})


@pytest.fixture
def quiet_console():
    return Console(file=io.StringIO(), width=200)


@pytest.fixture
def quiet_err_console():
    return Console(file=io.StringIO(), width=200)
