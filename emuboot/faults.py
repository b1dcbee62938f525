"""
Fault Scanner Module
Classifies emulator log lines as fatal or benign.
"""

from typing import Iterable

# Markers the emulator kernel prints when the guest is unrecoverable.
DEFAULT_FAULT_SIGNATURES = (" BUG: ", "Kernel panic")

BOOT_COMPLETED_MARKER = "INFO    | boot completed"


class FaultScanner:
    """Substring test against a fixed set of fault signatures."""

    def __init__(self, signatures: Iterable[str] = DEFAULT_FAULT_SIGNATURES):
        self.signatures = tuple(s for s in signatures if s)

    def is_fault(self, line: str) -> bool:
        return any(signature in line for signature in self.signatures)

    @staticmethod
    def is_boot_completed(line: str) -> bool:
        return BOOT_COMPLETED_MARKER in line
