"""Roster ledger: append-only passenger log per session."""

import logging
from dataclasses import dataclass
from typing import Protocol

from gozen_boarding.domain.errors import ValidationError
from gozen_boarding.domain.identity import UserContext, require_uid
from gozen_boarding.domain.roster import PaxRecord, PaxSource
from gozen_boarding.services.feeds import ChangeCallback, LiveFeed, Unsubscribe

_logger = logging.getLogger(__name__)


class PaxRepository(Protocol):
    """Persistence interface for boarded passengers."""

    async def append_pax(  # noqa: PLR0913
        self,
        session_id: str,
        name: str,
        seat: str,
        boarded_by: str,
        source: PaxSource,
    ) -> str:
        """Append a passenger record stamped with server time; return its id."""

    async def recent_pax(self, session_id: str, limit: int) -> list[PaxRecord]:
        """Return the newest passenger records for a session, newest first."""

    async def listen(self, session_id: str, on_change: ChangeCallback) -> Unsubscribe:
        """Call on_change whenever the session's roster changes."""


@dataclass
class RosterLedger:
    """Service for boarding passengers and watching the roster."""

    repository: PaxRepository
    feed_limit: int = 20

    async def append_pax(
        self,
        session_id: str,
        name: str,
        seat: str,
        user: UserContext | None,
        source: PaxSource | str = PaxSource.MANUAL,
    ) -> str:
        """Record a boarded passenger and return the new record id."""
        uid = require_uid(user)
        cleaned_name = name.strip()
        cleaned_seat = seat.strip().upper()
        if not cleaned_name or not cleaned_seat:
            raise ValidationError("Name and seat are required.")
        pax_source = _parse_source(source)
        pax_id = await self.repository.append_pax(
            session_id=session_id,
            name=cleaned_name,
            seat=cleaned_seat,
            boarded_by=uid,
            source=pax_source,
        )
        _logger.info(
            "Pax boarded: session=%s pax=%s seat=%s source=%s",
            session_id,
            pax_id,
            cleaned_seat,
            pax_source.value,
        )
        return pax_id

    async def recent_pax(
        self, session_id: str, user: UserContext | None
    ) -> list[PaxRecord]:
        """Return the latest boarded passengers, newest first."""
        require_uid(user)
        return await self.repository.recent_pax(session_id, self.feed_limit)

    def watch_roster(
        self, session_id: str, user: UserContext | None
    ) -> LiveFeed[PaxRecord]:
        """Return a live feed of the latest boarded passengers."""
        require_uid(user)

        async def listen(on_change: ChangeCallback) -> Unsubscribe:
            return await self.repository.listen(session_id, on_change)

        feed: LiveFeed[PaxRecord] = LiveFeed(
            fetch=lambda: self.repository.recent_pax(session_id, self.feed_limit),
            listen=listen,
            name=f"pax:{session_id}",
        )
        feed.release = user.track(feed.close)
        return feed


def _parse_source(source: PaxSource | str) -> PaxSource:
    if isinstance(source, PaxSource):
        return source
    try:
        return PaxSource(source.strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown boarding source: {source}") from None
