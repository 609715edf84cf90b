"""Supabase-backed session repository."""

from dataclasses import dataclass

from supabase import AsyncClient

from gozen_boarding.adapters.supabase_support import (
    listen_to_table,
    parse_timestamp,
    store_errors,
)
from gozen_boarding.domain.errors import NoActiveSession, StoreUnavailable
from gozen_boarding.domain.sessions import SessionRecord
from gozen_boarding.services.feeds import ChangeCallback, Unsubscribe
from gozen_boarding.services.sessions import SessionRepository

_COLUMNS = "id, flight_code, owner_uid, members, active, created_at, updated_at"


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for boarding sessions."""

    client: AsyncClient

    async def create_session(self, flight_code: str, owner_uid: str) -> SessionRecord:
        """Insert a session row; ids and timestamps come from the database."""
        with store_errors("create session"):
            response = (
                await self.client.table("sessions")
                .insert(
                    {
                        "flight_code": flight_code,
                        "owner_uid": owner_uid,
                        "members": [owner_uid],
                        "active": True,
                    }
                )
                .execute()
            )
        if not response.data:
            raise StoreUnavailable("Failed to create session")
        return _parse_session(response.data[0])

    async def get_session(self, session_id: str) -> SessionRecord | None:
        """Return a session by id, if present."""
        with store_errors("get session"):
            response = (
                await self.client.table("sessions")
                .select(_COLUMNS)
                .eq("id", session_id)
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    async def find_latest_active(self, flight_code: str) -> SessionRecord | None:
        """Return the newest active session for a flight code."""
        with store_errors("find session"):
            response = (
                await self.client.table("sessions")
                .select(_COLUMNS)
                .eq("flight_code", flight_code)
                .eq("active", True)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    async def add_member(self, session_id: str, uid: str) -> None:
        """Union uid into members in a single UPDATE on the database side."""
        with store_errors("join session"):
            response = await self.client.rpc(
                "add_session_member", {"p_session_id": session_id, "p_uid": uid}
            ).execute()
        if not response.data:
            raise NoActiveSession(f"Session not found: {session_id}")

    async def list_active_for_member(
        self, uid: str, limit: int
    ) -> list[SessionRecord]:
        """Return active sessions whose members contain uid."""
        with store_errors("list sessions"):
            response = (
                await self.client.table("sessions")
                .select(_COLUMNS)
                .eq("active", True)
                .contains("members", [uid])
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        return [_parse_session(row) for row in response.data or []]

    async def listen(self, on_change: ChangeCallback) -> Unsubscribe:
        """Subscribe to changes on the sessions table."""
        return await listen_to_table(self.client, "sessions", on_change)


def _parse_session(row: dict[str, object]) -> SessionRecord:
    members = row.get("members") or []
    return SessionRecord(
        id=str(row["id"]),
        flight_code=str(row["flight_code"]),
        owner_uid=str(row["owner_uid"]),
        members=tuple(str(member) for member in members),
        active=bool(row.get("active", True)),
        created_at=parse_timestamp(row.get("created_at")),
        updated_at=parse_timestamp(row.get("updated_at")),
    )
