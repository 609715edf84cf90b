"""Supabase Auth identity provider."""

from collections.abc import Callable
from dataclasses import dataclass

from supabase import AsyncClient, AuthApiError

from gozen_boarding.adapters.supabase_support import auth_errors
from gozen_boarding.domain.errors import AuthRejected
from gozen_boarding.services.auth import (
    AuthStateCallback,
    IdentityProvider,
    ProviderSession,
)


@dataclass
class SupabaseIdentityProvider(IdentityProvider):
    """Email/password identity backed by Supabase Auth.

    Every sign-in yields its own access token. Lookups and sign-out act on
    that token, never on the client's most recent session.
    """

    client: AsyncClient

    async def sign_up(self, email: str, password: str) -> ProviderSession:
        """Register an account and return its first session."""
        with auth_errors("sign up"):
            response = await self.client.auth.sign_up(
                {"email": email, "password": password}
            )
        if response.user is None:
            raise AuthRejected("Registration did not return a user")
        if response.session is None:
            return await self.sign_in(email, password)
        return ProviderSession(response.user.id, response.session.access_token)

    async def sign_in(self, email: str, password: str) -> ProviderSession:
        """Sign in with email and password and return the new session."""
        with auth_errors("sign in"):
            response = await self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        if response.user is None or response.session is None:
            raise AuthRejected("Sign in did not return a session")
        return ProviderSession(response.user.id, response.session.access_token)

    async def current_user_id(self, access_token: str) -> str | None:
        """Return the id of the user owning a session, or None once revoked."""
        with auth_errors("get user"):
            try:
                response = await self.client.auth.get_user(access_token)
            except AuthApiError:
                return None
        if response is None or response.user is None:
            return None
        return response.user.id

    async def sign_out(self, access_token: str) -> None:
        """Revoke a single session."""
        with auth_errors("sign out"):
            await self.client.auth.admin.sign_out(access_token, "local")

    def on_auth_state_change(
        self, callback: AuthStateCallback
    ) -> Callable[[], None]:
        """Forward auth transitions as user ids; returns an unsubscribe."""

        def forward(_event: object, session: object) -> None:
            user = getattr(session, "user", None)
            callback(user.id if user is not None else None)

        subscription = self.client.auth.on_auth_state_change(forward)
        return subscription.unsubscribe
