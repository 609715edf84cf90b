"""Domain models for the passenger roster."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class PaxSource(Enum):
    """How a passenger was boarded."""

    SCAN = "scan"
    MANUAL = "manual"


@dataclass(frozen=True)
class PaxRecord:
    """Represents one boarded passenger."""

    id: str
    session_id: str
    name: str
    seat: str
    boarded_by: str
    source: PaxSource
    created_at: datetime | None
