"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import acreate_client

from gozen_boarding.adapters.supabase_identity_provider import (
    SupabaseIdentityProvider,
)
from gozen_boarding.adapters.supabase_pax_repository import SupabasePaxRepository
from gozen_boarding.adapters.supabase_profile_repository import (
    SupabaseProfileRepository,
)
from gozen_boarding.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from gozen_boarding.config import Settings
from gozen_boarding.services.auth import AuthService
from gozen_boarding.services.preferences import PreferencesService
from gozen_boarding.services.roster import RosterLedger
from gozen_boarding.services.sessions import SessionDirectory


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    auth_service: AuthService
    session_directory: SessionDirectory
    roster_ledger: RosterLedger
    preferences_service: PreferencesService
    close_resources: Callable[[], Awaitable[None]]


async def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container.

    Auth runs on its own client so a sign-in never changes the credentials
    the store client queries with.
    """
    resolved_settings = settings or Settings()
    auth_client = await acreate_client(
        resolved_settings.supabase_url, resolved_settings.supabase_anon_key
    )
    store_client = await acreate_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    profile_repository = SupabaseProfileRepository(store_client)
    auth_service = AuthService(
        provider=SupabaseIdentityProvider(auth_client),
        profiles=profile_repository,
        email_domain=resolved_settings.synthetic_email_domain,
        min_password_length=resolved_settings.min_password_length,
        context_ttl=timedelta(hours=resolved_settings.context_ttl_hours),
        max_contexts=resolved_settings.max_contexts,
    )
    session_directory = SessionDirectory(
        SupabaseSessionRepository(store_client),
        feed_limit=resolved_settings.feed_limit,
    )
    roster_ledger = RosterLedger(
        SupabasePaxRepository(store_client),
        feed_limit=resolved_settings.feed_limit,
    )
    preferences_service = PreferencesService(profile_repository)

    async def close_resources() -> None:
        await store_client.remove_all_channels()

    return AppContainer(
        settings=resolved_settings,
        auth_service=auth_service,
        session_directory=session_directory,
        roster_ledger=roster_ledger,
        preferences_service=preferences_service,
        close_resources=close_resources,
    )
