"""Signed-in user context and identity mapping."""

import re
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

from gozen_boarding.domain.errors import AuthRequired

_UNSAFE_EMAIL_CHARS = re.compile(r"[^a-z0-9._-]")

Closer = Callable[[], Awaitable[None]]


def synthetic_email(username: str, domain: str = "gozen.local") -> str:
    """Map a username to the email-shaped identifier the provider expects."""
    local = username.strip().lower().replace(" ", "")
    safe = _UNSAFE_EMAIL_CHARS.sub("_", local)
    return f"{safe}@{domain}"


@dataclass
class UserContext:
    """Explicit signed-in state, created on sign-in and torn down on sign-out.

    ``access_token`` is the provider session this context owns; signing the
    context out revokes only that session.
    """

    uid: str
    username: str
    access_token: str = field(default="", repr=False)
    issued_at: datetime | None = None
    token: str = field(default_factory=lambda: secrets.token_urlsafe(32))
    signed_in: bool = True
    _closers: list[Closer] = field(default_factory=list, repr=False)

    def track(self, closer: Closer) -> Callable[[], None]:
        """Register a resource to release on sign-out; returns an untrack."""
        self._closers.append(closer)

        def untrack() -> None:
            if closer in self._closers:
                self._closers.remove(closer)

        return untrack

    async def close(self) -> None:
        """Release every tracked resource and mark the context signed out."""
        self.signed_in = False
        closers, self._closers = self._closers, []
        for closer in closers:
            await closer()


def require_uid(user: UserContext | None) -> str:
    """Return the signed-in user's id or raise AuthRequired."""
    if user is None or not user.signed_in:
        raise AuthRequired("Sign in to continue.")
    return user.uid
