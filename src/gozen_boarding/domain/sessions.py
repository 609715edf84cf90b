"""Domain models for boarding sessions."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted boarding session."""

    id: str
    flight_code: str
    owner_uid: str
    members: tuple[str, ...]
    active: bool
    created_at: datetime | None
    updated_at: datetime | None


@dataclass(frozen=True)
class SessionHandle:
    """What a device needs to keep working in a session after create or join."""

    session_id: str
    flight_code: str
