"""Supabase-backed profile and preferences repository."""

from dataclasses import dataclass

from supabase import AsyncClient

from gozen_boarding.adapters.supabase_support import store_errors
from gozen_boarding.services.auth import ProfileRepository
from gozen_boarding.services.preferences import PreferencesRepository


@dataclass
class SupabaseProfileRepository(ProfileRepository, PreferencesRepository):
    """Supabase implementation for user profiles."""

    client: AsyncClient

    async def upsert_profile(self, uid: str, username: str) -> None:
        """Merge the username into the user's profile row."""
        with store_errors("save profile"):
            await self.client.table("profiles").upsert(
                {"id": uid, "username": username}
            ).execute()

    async def get_username(self, uid: str) -> str | None:
        """Return the stored username, if any."""
        with store_errors("get profile"):
            response = (
                await self.client.table("profiles")
                .select("username")
                .eq("id", uid)
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return response.data[0].get("username")

    async def get_night_mode(self, uid: str) -> bool | None:
        """Return the stored night mode flag, if any."""
        with store_errors("get preferences"):
            response = (
                await self.client.table("profiles")
                .select("night_mode")
                .eq("id", uid)
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return response.data[0].get("night_mode")

    async def set_night_mode(self, uid: str, enabled: bool) -> None:
        """Merge the night mode flag into the user's profile row."""
        with store_errors("save preferences"):
            await self.client.table("profiles").upsert(
                {"id": uid, "night_mode": enabled}
            ).execute()
