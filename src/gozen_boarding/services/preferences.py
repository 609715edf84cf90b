"""User preferences service."""

import logging
from dataclasses import dataclass
from typing import Protocol

from gozen_boarding.domain.errors import BoardingError
from gozen_boarding.domain.identity import UserContext, require_uid

_logger = logging.getLogger(__name__)


class PreferencesRepository(Protocol):
    """Persistence interface for user preferences."""

    async def get_night_mode(self, uid: str) -> bool | None:
        """Return the stored night mode flag, if set."""

    async def set_night_mode(self, uid: str, enabled: bool) -> None:
        """Merge the night mode flag into the user's profile."""


@dataclass
class PreferencesService:
    """Service for display preferences."""

    repository: PreferencesRepository

    async def night_mode(self, user: UserContext | None) -> bool:
        """Return the user's night mode, or False when it cannot be loaded."""
        uid = require_uid(user)
        try:
            return bool(await self.repository.get_night_mode(uid))
        except BoardingError as exc:
            _logger.warning("Night mode load failed for uid=%s: %s", uid, exc)
            return False

    async def set_night_mode(self, user: UserContext | None, enabled: bool) -> bool:
        """Persist the user's night mode and return it."""
        uid = require_uid(user)
        await self.repository.set_night_mode(uid, enabled)
        return enabled

    async def toggle_night_mode(self, user: UserContext | None) -> bool:
        """Flip the user's night mode and return the new value."""
        return await self.set_night_mode(user, not await self.night_mode(user))
