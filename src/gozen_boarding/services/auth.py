"""Username/password sign-in and the signed-in user context."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from gozen_boarding.domain.errors import ValidationError
from gozen_boarding.domain.identity import UserContext, require_uid, synthetic_email

_logger = logging.getLogger(__name__)

AuthStateCallback = Callable[[str | None], None]


@dataclass(frozen=True)
class ProviderSession:
    """A signed-in session issued by the identity provider."""

    uid: str
    access_token: str


class IdentityProvider(Protocol):
    """Interface for the external identity provider."""

    async def sign_up(self, email: str, password: str) -> ProviderSession:
        """Register an account and return its first session."""

    async def sign_in(self, email: str, password: str) -> ProviderSession:
        """Sign in and return a new session."""

    async def current_user_id(self, access_token: str) -> str | None:
        """Return the user id a session belongs to, or None once revoked."""

    async def sign_out(self, access_token: str) -> None:
        """Revoke one session without touching the user's other sessions."""

    def on_auth_state_change(
        self, callback: AuthStateCallback
    ) -> Callable[[], None]:
        """Call callback with the user id (or None) on every auth transition."""


class ProfileRepository(Protocol):
    """Persistence interface for user profiles."""

    async def upsert_profile(self, uid: str, username: str) -> None:
        """Create or merge the profile row for a user."""

    async def get_username(self, uid: str) -> str | None:
        """Return the stored username, if any."""


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class AuthService:
    """Application service for sign-up, sign-in and sign-out.

    Signed-in contexts are kept by bearer token. They expire after
    ``context_ttl`` and the oldest are dropped beyond ``max_contexts``.
    """

    provider: IdentityProvider
    profiles: ProfileRepository
    email_domain: str = "gozen.local"
    min_password_length: int = 4
    context_ttl: timedelta = timedelta(hours=12)
    max_contexts: int = 1000
    clock: Callable[[], datetime] = _utc_now
    _contexts: dict[str, UserContext] = field(default_factory=dict, init=False)

    async def register(self, username: str, password: str) -> UserContext:
        """Create an account for a username and sign it in."""
        return await self._authenticate(username, password, register=True)

    async def sign_in(self, username: str, password: str) -> UserContext:
        """Sign in an existing username."""
        return await self._authenticate(username, password, register=False)

    async def sign_out(self, user: UserContext) -> None:
        """Tear down the user's context and revoke its provider session."""
        self._contexts.pop(user.token, None)
        await user.close()
        await self.provider.sign_out(user.access_token)
        _logger.info("User signed out: uid=%s", user.uid)

    async def resolve(self, token: str | None) -> UserContext:
        """Return the signed-in context for a bearer token."""
        user = self._contexts.get(token) if token else None
        if user is not None and self._expired(user):
            await self._drop(user)
            user = None
        require_uid(user)
        return user

    async def current_user_id(self, user: UserContext | None) -> str | None:
        """Return the provider's view of who the context's session belongs to."""
        require_uid(user)
        return await self.provider.current_user_id(user.access_token)

    def watch_auth_state(self, callback: AuthStateCallback) -> Callable[[], None]:
        """Subscribe to provider auth transitions; returns an unsubscribe."""
        return self.provider.on_auth_state_change(callback)

    async def display_name(self, user: UserContext | None) -> str:
        """Return the stored username for greeting the user."""
        uid = require_uid(user)
        return await self.profiles.get_username(uid) or "User"

    async def _authenticate(
        self, username: str, password: str, *, register: bool
    ) -> UserContext:
        handle = username.strip()
        if not handle or len(password) < self.min_password_length:
            raise ValidationError(
                "Username cannot be empty. Password must be at least "
                f"{self.min_password_length} characters."
            )
        email = synthetic_email(handle, self.email_domain)
        if register:
            session = await self.provider.sign_up(email, password)
        else:
            session = await self.provider.sign_in(email, password)
        await self.profiles.upsert_profile(session.uid, handle)
        user = UserContext(
            uid=session.uid,
            username=handle,
            access_token=session.access_token,
            issued_at=self.clock(),
        )
        await self._remember(user)
        _logger.info("User signed in: uid=%s registered=%s", session.uid, register)
        return user

    async def _remember(self, user: UserContext) -> None:
        for stale in [c for c in self._contexts.values() if self._expired(c)]:
            await self._drop(stale)
        while len(self._contexts) >= self.max_contexts:
            await self._drop(next(iter(self._contexts.values())))
        self._contexts[user.token] = user

    async def _drop(self, user: UserContext) -> None:
        self._contexts.pop(user.token, None)
        await user.close()
        _logger.info("User context dropped: uid=%s", user.uid)

    def _expired(self, user: UserContext) -> bool:
        if user.issued_at is None:
            return False
        return self.clock() - user.issued_at >= self.context_ttl
