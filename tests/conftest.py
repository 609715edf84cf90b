"""Shared test fixtures."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from gozen_boarding.config import Settings
from gozen_boarding.containers import AppContainer
from gozen_boarding.domain.errors import AuthRejected, NoActiveSession
from gozen_boarding.domain.identity import UserContext
from gozen_boarding.domain.roster import PaxRecord, PaxSource
from gozen_boarding.domain.sessions import SessionRecord
from gozen_boarding.services.auth import (
    AuthService,
    AuthStateCallback,
    IdentityProvider,
    ProfileRepository,
    ProviderSession,
)
from gozen_boarding.services.feeds import ChangeCallback, Unsubscribe
from gozen_boarding.services.preferences import (
    PreferencesRepository,
    PreferencesService,
)
from gozen_boarding.services.roster import PaxRepository, RosterLedger
from gozen_boarding.services.sessions import SessionDirectory, SessionRepository


@dataclass
class ServerClock:
    """Strictly increasing stand-in for server timestamps."""

    start: datetime = datetime(2026, 10, 19, 8, 0, tzinfo=UTC)
    ticks: int = 0

    def now(self) -> datetime:
        self.ticks += 1
        return self.start + timedelta(seconds=self.ticks)


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session repository for tests."""

    sessions: dict[str, SessionRecord] = field(default_factory=dict)
    listeners: list[ChangeCallback] = field(default_factory=list)
    clock: ServerClock = field(default_factory=ServerClock)

    async def create_session(self, flight_code: str, owner_uid: str) -> SessionRecord:
        now = self.clock.now()
        session = SessionRecord(
            id=str(uuid4()),
            flight_code=flight_code,
            owner_uid=owner_uid,
            members=(owner_uid,),
            active=True,
            created_at=now,
            updated_at=now,
        )
        self.sessions[session.id] = session
        self._notify()
        return session

    async def get_session(self, session_id: str) -> SessionRecord | None:
        return self.sessions.get(session_id)

    async def find_latest_active(self, flight_code: str) -> SessionRecord | None:
        await asyncio.sleep(0)
        candidates = [
            session
            for session in self.sessions.values()
            if session.flight_code == flight_code and session.active
        ]
        return max(candidates, key=lambda session: session.created_at, default=None)

    async def add_member(self, session_id: str, uid: str) -> None:
        await asyncio.sleep(0)
        session = self.sessions.get(session_id)
        if session is None:
            raise NoActiveSession(f"Session not found: {session_id}")
        members = session.members
        if uid not in members:
            members = (*members, uid)
        self.sessions[session_id] = replace(
            session, members=members, updated_at=self.clock.now()
        )
        self._notify()

    async def list_active_for_member(
        self, uid: str, limit: int
    ) -> list[SessionRecord]:
        matches = [
            session
            for session in self.sessions.values()
            if session.active and uid in session.members
        ]
        matches.sort(key=lambda session: session.created_at, reverse=True)
        return matches[:limit]

    async def listen(self, on_change: ChangeCallback) -> Unsubscribe:
        self.listeners.append(on_change)

        async def unsubscribe() -> None:
            self.listeners.remove(on_change)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self.listeners):
            listener()


@dataclass
class InMemoryPaxRepository(PaxRepository):
    """In-memory passenger roster for tests."""

    records: list[PaxRecord] = field(default_factory=list)
    listeners: dict[str, list[ChangeCallback]] = field(default_factory=dict)
    clock: ServerClock = field(default_factory=ServerClock)

    async def append_pax(  # noqa: PLR0913
        self,
        session_id: str,
        name: str,
        seat: str,
        boarded_by: str,
        source: PaxSource,
    ) -> str:
        record = PaxRecord(
            id=str(uuid4()),
            session_id=session_id,
            name=name,
            seat=seat,
            boarded_by=boarded_by,
            source=source,
            created_at=self.clock.now(),
        )
        self.records.append(record)
        for listener in list(self.listeners.get(session_id, [])):
            listener()
        return record.id

    async def recent_pax(self, session_id: str, limit: int) -> list[PaxRecord]:
        matches = [record for record in self.records if record.session_id == session_id]
        matches.sort(key=lambda record: record.created_at, reverse=True)
        return matches[:limit]

    async def listen(self, session_id: str, on_change: ChangeCallback) -> Unsubscribe:
        self.listeners.setdefault(session_id, []).append(on_change)

        async def unsubscribe() -> None:
            self.listeners[session_id].remove(on_change)

        return unsubscribe


@dataclass
class InMemoryProfileRepository(ProfileRepository, PreferencesRepository):
    """In-memory profiles for tests."""

    profiles: dict[str, dict[str, object]] = field(default_factory=dict)

    async def upsert_profile(self, uid: str, username: str) -> None:
        self.profiles.setdefault(uid, {})["username"] = username

    async def get_username(self, uid: str) -> str | None:
        return self.profiles.get(uid, {}).get("username")

    async def get_night_mode(self, uid: str) -> bool | None:
        return self.profiles.get(uid, {}).get("night_mode")

    async def set_night_mode(self, uid: str, enabled: bool) -> None:
        self.profiles.setdefault(uid, {})["night_mode"] = enabled


@dataclass
class FakeIdentityProvider(IdentityProvider):
    """Fake identity provider keyed by email, issuing one token per sign-in."""

    accounts: dict[str, tuple[str, str]] = field(default_factory=dict)
    sessions: dict[str, str] = field(default_factory=dict)
    listeners: list[AuthStateCallback] = field(default_factory=list)
    emails: list[str] = field(default_factory=list)

    async def sign_up(self, email: str, password: str) -> ProviderSession:
        self.emails.append(email)
        if email in self.accounts:
            raise AuthRejected("User already registered")
        uid = str(uuid4())
        self.accounts[email] = (uid, password)
        return self._issue(uid)

    async def sign_in(self, email: str, password: str) -> ProviderSession:
        self.emails.append(email)
        account = self.accounts.get(email)
        if account is None or account[1] != password:
            raise AuthRejected("Invalid login credentials")
        return self._issue(account[0])

    async def current_user_id(self, access_token: str) -> str | None:
        return self.sessions.get(access_token)

    async def sign_out(self, access_token: str) -> None:
        self.sessions.pop(access_token, None)
        self._emit(None)

    def on_auth_state_change(
        self, callback: AuthStateCallback
    ) -> Callable[[], None]:
        self.listeners.append(callback)
        return lambda: self.listeners.remove(callback)

    def _issue(self, uid: str) -> ProviderSession:
        access_token = f"jwt-{uuid4().hex}"
        self.sessions[access_token] = uid
        self._emit(uid)
        return ProviderSession(uid, access_token)

    def _emit(self, uid: str | None) -> None:
        for listener in list(self.listeners):
            listener(uid)


def make_user(uid: str) -> UserContext:
    """Build a signed-in context without going through the provider."""
    return UserContext(uid=uid, username=uid)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_anon_key="anon-key",
        supabase_service_key="service-key",
    )


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def pax_repository() -> InMemoryPaxRepository:
    return InMemoryPaxRepository()


@pytest.fixture
def profile_repository() -> InMemoryProfileRepository:
    return InMemoryProfileRepository()


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def container(
    settings: Settings,
    session_repository: InMemorySessionRepository,
    pax_repository: InMemoryPaxRepository,
    profile_repository: InMemoryProfileRepository,
    identity_provider: FakeIdentityProvider,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        auth_service=AuthService(
            provider=identity_provider, profiles=profile_repository
        ),
        session_directory=SessionDirectory(session_repository),
        roster_ledger=RosterLedger(pax_repository),
        preferences_service=PreferencesService(profile_repository),
        close_resources=close_resources,
    )
