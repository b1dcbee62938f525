"""
Output Monitor Module
Fans emulator output out to the console, the attempt log and the fault scanner.
"""

import logging
import threading
from typing import Callable, Optional

from rich.console import Console

from .faults import FaultScanner
from .models import BootAttempt
from .process import STDERR

logger = logging.getLogger(__name__)


class OutputMonitor:
    """
    Line sink for one boot attempt.

    Every line is echoed to the console of its stream, appended to the
    attempt's log buffer and checked for faults. The first fault line
    triggers `on_fault` once; later ones are only recorded. After
    `close()` returns no line is delivered anywhere.
    """

    def __init__(
        self,
        attempt: BootAttempt,
        scanner: FaultScanner,
        on_fault: Callable[[str], None],
        console: Optional[Console] = None,
        err_console: Optional[Console] = None
    ):
        self.attempt = attempt
        self.scanner = scanner
        self.on_fault = on_fault
        self.console = console or Console(soft_wrap=True)
        self.err_console = err_console or Console(stderr=True, soft_wrap=True)
        self.fault_line: Optional[str] = None
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, stream: str, line: str):
        with self._lock:
            if self._closed:
                return

            target = self.err_console if stream == STDERR else self.console
            target.out(line, highlight=False)
            self.attempt.append_output(line)

            if self.scanner.is_boot_completed(line):
                logger.info("Emulator log reports boot completed")

            if self.fault_line is None and self.scanner.is_fault(line):
                self.fault_line = line
                logger.warning("Emulator log contains fault: %s", line)
                self.on_fault(line)

    def close(self):
        with self._lock:
            self._closed = True
