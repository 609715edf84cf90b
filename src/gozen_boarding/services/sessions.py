"""Session directory: create, join and list shared boarding sessions."""

import logging
from dataclasses import dataclass
from typing import Protocol

from gozen_boarding.domain.codes import normalize_flight_code
from gozen_boarding.domain.errors import InvalidCode, NoActiveSession
from gozen_boarding.domain.identity import UserContext, require_uid
from gozen_boarding.domain.sessions import SessionHandle, SessionRecord
from gozen_boarding.services.feeds import ChangeCallback, LiveFeed, Unsubscribe

_logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Persistence interface for boarding sessions."""

    async def create_session(self, flight_code: str, owner_uid: str) -> SessionRecord:
        """Create an active session owned by and containing the owner."""

    async def get_session(self, session_id: str) -> SessionRecord | None:
        """Return a session by id, if present."""

    async def find_latest_active(self, flight_code: str) -> SessionRecord | None:
        """Return the most recently created active session for a code."""

    async def add_member(self, session_id: str, uid: str) -> None:
        """Atomically union uid into members and refresh updated_at."""

    async def list_active_for_member(
        self, uid: str, limit: int
    ) -> list[SessionRecord]:
        """Return active sessions containing uid, newest first."""

    async def listen(self, on_change: ChangeCallback) -> Unsubscribe:
        """Call on_change whenever any session changes."""


@dataclass
class SessionDirectory:
    """Create-or-join logic over the shared sessions collection.

    Create does not check for an existing session. Two devices creating a
    session for the same flight at once both succeed, and joins resolve to
    the newest active one.
    """

    repository: SessionRepository
    feed_limit: int = 20

    async def create_session(
        self, flight_code_raw: str, user: UserContext | None
    ) -> SessionHandle:
        """Create a new session for a flight with the caller as owner."""
        uid = require_uid(user)
        flight_code = _require_code(flight_code_raw)
        session = await self.repository.create_session(flight_code, uid)
        _logger.info(
            "Session created: id=%s flight_code=%s owner=%s",
            session.id,
            flight_code,
            uid,
        )
        return SessionHandle(session_id=session.id, flight_code=session.flight_code)

    async def join_session(
        self, flight_code_raw: str, user: UserContext | None
    ) -> SessionHandle:
        """Join the newest active session for a flight."""
        uid = require_uid(user)
        flight_code = _require_code(flight_code_raw)
        session = await self.repository.find_latest_active(flight_code)
        if session is None:
            raise NoActiveSession(f"No active session for flight {flight_code}")
        await self.repository.add_member(session.id, uid)
        _logger.info(
            "Session joined: id=%s flight_code=%s uid=%s",
            session.id,
            flight_code,
            uid,
        )
        return SessionHandle(session_id=session.id, flight_code=session.flight_code)

    async def get_session(
        self, session_id: str, user: UserContext | None
    ) -> SessionRecord:
        """Return a session the caller is a member of.

        Sessions the caller has not joined are reported as missing.
        """
        uid = require_uid(user)
        session = await self.repository.get_session(session_id)
        if session is None or uid not in session.members:
            raise NoActiveSession(f"Session not found: {session_id}")
        return session

    async def my_sessions(self, user: UserContext | None) -> list[SessionRecord]:
        """Return the caller's active sessions, newest first."""
        uid = require_uid(user)
        return await self.repository.list_active_for_member(uid, self.feed_limit)

    def list_my_sessions(self, user: UserContext | None) -> LiveFeed[SessionRecord]:
        """Return a live feed of the caller's active sessions."""
        uid = require_uid(user)
        feed: LiveFeed[SessionRecord] = LiveFeed(
            fetch=lambda: self.repository.list_active_for_member(
                uid, self.feed_limit
            ),
            listen=self.repository.listen,
            name=f"sessions:{uid}",
        )
        feed.release = user.track(feed.close)
        return feed


def _require_code(flight_code_raw: str) -> str:
    flight_code = normalize_flight_code(flight_code_raw)
    if not flight_code:
        raise InvalidCode("Flight code cannot be empty.")
    return flight_code
