"""Shared helpers for Supabase adapters."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from uuid import uuid4

import httpx
from postgrest import APIError
from supabase import AsyncClient, AuthApiError, AuthError

from gozen_boarding.domain.errors import (
    AuthRejected,
    NoActiveSession,
    StoreUnavailable,
    ValidationError,
)
from gozen_boarding.services.feeds import ChangeCallback, Unsubscribe

_logger = logging.getLogger(__name__)

_STORE_FAILURES = (httpx.HTTPError, OSError, TimeoutError)

# invalid_text_representation (malformed uuid), foreign_key_violation
_MISSING_ROW_CODES = frozenset({"22P02", "23503"})
# not_null_violation, check_violation
_INVALID_ROW_CODES = frozenset({"23502", "23514"})


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Translate store client failures into domain errors.

    Malformed ids and dangling references read as a missing session and
    constraint violations as invalid input. Anything else is an outage.
    """
    try:
        yield
    except APIError as exc:
        if exc.code in _MISSING_ROW_CODES:
            _logger.info("Store %s found no session: %s", action, exc.message)
            raise NoActiveSession(f"Session not found: {exc.message}") from exc
        if exc.code in _INVALID_ROW_CODES:
            _logger.info("Store %s rejected row: %s", action, exc.message)
            raise ValidationError(exc.message or "Invalid record.") from exc
        _logger.warning("Store %s failed: %s", action, exc)
        raise StoreUnavailable(f"Store {action} failed: {exc}") from exc
    except _STORE_FAILURES as exc:
        _logger.warning("Store %s failed: %s", action, exc)
        raise StoreUnavailable(f"Store {action} failed: {exc}") from exc


@contextmanager
def auth_errors(action: str) -> Iterator[None]:
    """Translate auth client failures into AuthRejected or StoreUnavailable."""
    try:
        yield
    except AuthApiError as exc:
        _logger.info("Auth %s rejected: %s", action, exc)
        raise AuthRejected(str(exc)) from exc
    except (AuthError, httpx.HTTPError) as exc:
        _logger.warning("Auth %s failed: %s", action, exc)
        raise StoreUnavailable(f"Auth {action} failed: {exc}") from exc


def parse_timestamp(value: object) -> datetime | None:
    """Parse a Postgres timestamptz value returned by PostgREST."""
    if not value:
        return None
    return datetime.fromisoformat(str(value))


async def listen_to_table(
    client: AsyncClient,
    table: str,
    on_change: ChangeCallback,
    row_filter: str | None = None,
) -> Unsubscribe:
    """Subscribe to row changes on a table via Supabase Realtime."""
    channel = client.channel(f"{table}:{uuid4().hex}")
    channel.on_postgres_changes(
        event="*",
        schema="public",
        table=table,
        filter=row_filter,
        callback=lambda _payload: on_change(),
    )
    with store_errors(f"subscribe {table}"):
        await channel.subscribe()

    async def unsubscribe() -> None:
        await client.remove_channel(channel)

    return unsubscribe
