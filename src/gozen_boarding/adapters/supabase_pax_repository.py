"""Supabase-backed passenger roster repository."""

from dataclasses import dataclass

from supabase import AsyncClient

from gozen_boarding.adapters.supabase_support import (
    listen_to_table,
    parse_timestamp,
    store_errors,
)
from gozen_boarding.domain.errors import StoreUnavailable
from gozen_boarding.domain.roster import PaxRecord, PaxSource
from gozen_boarding.services.feeds import ChangeCallback, Unsubscribe
from gozen_boarding.services.roster import PaxRepository

_COLUMNS = "id, session_id, name, seat, boarded_by, source, created_at"


@dataclass
class SupabasePaxRepository(PaxRepository):
    """Supabase implementation for the passenger roster."""

    client: AsyncClient

    async def append_pax(  # noqa: PLR0913
        self,
        session_id: str,
        name: str,
        seat: str,
        boarded_by: str,
        source: PaxSource,
    ) -> str:
        """Insert a pax row and return its id."""
        with store_errors("append pax"):
            response = (
                await self.client.table("pax")
                .insert(
                    {
                        "session_id": session_id,
                        "name": name,
                        "seat": seat,
                        "boarded_by": boarded_by,
                        "source": source.value,
                    }
                )
                .execute()
            )
        if not response.data:
            raise StoreUnavailable("Failed to append pax")
        return str(response.data[0]["id"])

    async def recent_pax(self, session_id: str, limit: int) -> list[PaxRecord]:
        """Return the newest pax rows for a session."""
        with store_errors("list pax"):
            response = (
                await self.client.table("pax")
                .select(_COLUMNS)
                .eq("session_id", session_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        return [_parse_pax(row) for row in response.data or []]

    async def listen(self, session_id: str, on_change: ChangeCallback) -> Unsubscribe:
        """Subscribe to pax rows added to one session."""
        return await listen_to_table(
            self.client, "pax", on_change, row_filter=f"session_id=eq.{session_id}"
        )


def _parse_pax(row: dict[str, object]) -> PaxRecord:
    return PaxRecord(
        id=str(row["id"]),
        session_id=str(row["session_id"]),
        name=str(row["name"]),
        seat=str(row["seat"]),
        boarded_by=str(row["boarded_by"]),
        source=PaxSource(row.get("source", PaxSource.MANUAL.value)),
        created_at=parse_timestamp(row.get("created_at")),
    )
