"""
Boot Data Models Module
Dataclasses describing boot attempts, supervisor events and outcomes.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class FailureReason(Enum):
    """Why a boot request ended without a device."""
    TIMEOUT = "timeout"
    FAULT_EXHAUSTED = "fault_exhausted"
    PROCESS_EXITED = "process_exited"
    QUERY_ERROR = "query_error"
    START_ERROR = "start_error"


class EventKind(Enum):
    """Event sources racing inside one boot attempt."""
    FAULT = "fault"
    EXITED = "exited"
    READY = "ready"


# Lower value wins when several events are pending at the decision point.
EVENT_PRIORITY = {
    EventKind.FAULT: 0,
    EventKind.EXITED: 1,
    EventKind.READY: 2,
}


@dataclass(frozen=True)
class BootEvent:
    """A single signal posted to an attempt's event bus."""
    kind: EventKind
    attempt: int
    serial: Optional[str] = None
    line: Optional[str] = None
    returncode: Optional[int] = None


@dataclass
class BootAttempt:
    """One launch of the emulator process and its accumulated output."""
    index: int
    started_at: float
    process: Any = None
    _buffer: bytearray = field(default_factory=bytearray, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def append_output(self, line: str):
        with self._lock:
            self._buffer += line.encode("utf-8", errors="replace") + b"\n"

    def log_text(self) -> str:
        with self._lock:
            return self._buffer.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class Booted:
    """A new emulator reached the `device` state."""
    serial: str
    process: Any
    attempts: int
    elapsed: float


@dataclass(frozen=True)
class Failed:
    """The boot request failed; `log` is the last attempt's emulator output."""
    reason: FailureReason
    detail: str
    log: str = ""
    attempts: int = 0
    elapsed: float = 0.0


BootOutcome = Union[Booted, Failed]
