"""Live whole-snapshot subscriptions."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")

Unsubscribe = Callable[[], Awaitable[None]]
ChangeCallback = Callable[[], None]

_logger = logging.getLogger(__name__)


@dataclass
class LiveFeed(Generic[T]):
    """Cancellable stream of full query results, re-fetched on every change.

    Each item is the complete current result set, never a diff. Changes that
    arrive while a snapshot is being fetched collapse into one follow-up
    snapshot, so consumers always converge on the latest server state.
    """

    fetch: Callable[[], Awaitable[list[T]]]
    listen: Callable[[ChangeCallback], Awaitable[Unsubscribe]]
    name: str = "feed"
    release: Callable[[], None] | None = None
    _changed: asyncio.Event = field(default_factory=asyncio.Event, init=False)
    _unsubscribe: Unsubscribe | None = field(default=None, init=False)
    _closed: bool = field(default=False, init=False)

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> "LiveFeed[T]":
        """Start listening for changes and schedule the first snapshot."""
        if self._closed or self._unsubscribe is not None:
            return self
        unsubscribe = await self.listen(self._notify)
        if self._closed:
            await unsubscribe()
            return self
        self._unsubscribe = unsubscribe
        self._changed.set()
        _logger.debug("Feed opened: %s", self.name)
        return self

    async def close(self) -> None:
        """Stop listening and end iteration. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._changed.set()
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            await unsubscribe()
        if self.release is not None:
            self.release()
        _logger.debug("Feed closed: %s", self.name)

    def _notify(self) -> None:
        self._changed.set()

    async def __aenter__(self) -> "LiveFeed[T]":
        return await self.open()

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    def __aiter__(self) -> "LiveFeed[T]":
        return self

    async def __anext__(self) -> list[T]:
        await self.open()
        await self._changed.wait()
        if self._closed:
            raise StopAsyncIteration
        self._changed.clear()
        return await self.fetch()
