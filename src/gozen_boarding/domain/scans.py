"""Domain models for scan verification."""

from dataclasses import dataclass
from enum import Enum


class ScanStatus(Enum):
    """Result of comparing a scanned code with the session's code."""

    EMPTY = "empty"
    MATCH = "match"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class ScanOutcome:
    """Scan verdict with both canonical codes for display."""

    status: ScanStatus
    scanned: str
    expected: str

    @property
    def is_match(self) -> bool:
        return self.status is ScanStatus.MATCH
