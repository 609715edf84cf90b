"""FastAPI application factory."""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from collections.abc import AsyncIterator, Callable
from datetime import datetime
from typing import TypeVar

from fastapi import Depends, FastAPI, Header, Request, WebSocket, status
from fastapi.responses import JSONResponse
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from gozen_boarding.api.schemas import (
    CredentialsRequest,
    FlightCodeRequest,
    PaxRequest,
    PreferencesRequest,
    ScanRequest,
)
from gozen_boarding.app_logging import configure_logging
from gozen_boarding.containers import AppContainer, build_container
from gozen_boarding.domain.errors import (
    AuthRejected,
    AuthRequired,
    BoardingError,
    InvalidCode,
    NoActiveSession,
    StoreUnavailable,
    ValidationError,
)
from gozen_boarding.domain.identity import UserContext
from gozen_boarding.domain.roster import PaxRecord
from gozen_boarding.domain.sessions import SessionHandle, SessionRecord
from gozen_boarding.services.feeds import LiveFeed
from gozen_boarding.services.scans import verify_scan

T = TypeVar("T")

_logger = logging.getLogger(__name__)

_ERROR_STATUS: list[tuple[type[BoardingError], int]] = [
    (InvalidCode, 422),
    (ValidationError, 422),
    (NoActiveSession, 404),
    (AuthRequired, 401),
    (AuthRejected, 401),
    (StoreUnavailable, 503),
]

_WS_UNAUTHORIZED = 4401
_WS_NOT_FOUND = 4404


def create_app(container: AppContainer | None = None) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies.

    Without a container, one is built from settings on startup.
    """
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.container is None:
            app.state.container = await build_container()
        state_container: AppContainer = app.state.container
        unsubscribe = state_container.auth_service.watch_auth_state(
            lambda uid: _logger.info("Auth state changed: uid=%s", uid)
        )
        yield
        unsubscribe()
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(BoardingError)
    async def boarding_error(_request: Request, exc: BoardingError) -> JSONResponse:
        return JSONResponse(
            status_code=_status_for(exc),
            content={"error": exc.code, "detail": str(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/auth/register")
    async def register(body: CredentialsRequest, request: Request) -> dict[str, str]:
        """Create an account and return a bearer token."""
        state_container: AppContainer = request.app.state.container
        user = await state_container.auth_service.register(body.username, body.password)
        return _user_payload(user)

    @app.post("/auth/login")
    async def login(body: CredentialsRequest, request: Request) -> dict[str, str]:
        """Sign in and return a bearer token."""
        state_container: AppContainer = request.app.state.container
        user = await state_container.auth_service.sign_in(body.username, body.password)
        return _user_payload(user)

    @app.post("/auth/logout")
    async def logout(
        request: Request, user: UserContext = Depends(current_user)
    ) -> dict[str, str]:
        """Sign out and release the user's live feeds."""
        state_container: AppContainer = request.app.state.container
        await state_container.auth_service.sign_out(user)
        return {"status": "ok"}

    @app.get("/me")
    async def me(
        request: Request, user: UserContext = Depends(current_user)
    ) -> dict[str, object]:
        """Return the signed-in user's profile and preferences."""
        state_container: AppContainer = request.app.state.container
        return {
            "user_id": user.uid,
            "username": await state_container.auth_service.display_name(user),
            "night_mode": await state_container.preferences_service.night_mode(user),
        }

    @app.put("/me/preferences")
    async def update_preferences(
        body: PreferencesRequest,
        request: Request,
        user: UserContext = Depends(current_user),
    ) -> dict[str, bool]:
        """Persist display preferences."""
        state_container: AppContainer = request.app.state.container
        night_mode = await state_container.preferences_service.set_night_mode(
            user, body.night_mode
        )
        return {"night_mode": night_mode}

    @app.post("/sessions")
    async def create_session(
        body: FlightCodeRequest,
        request: Request,
        user: UserContext = Depends(current_user),
    ) -> dict[str, str]:
        """Create a boarding session for a flight."""
        state_container: AppContainer = request.app.state.container
        handle = await state_container.session_directory.create_session(
            body.flight_code, user
        )
        return _handle_payload(handle)

    @app.post("/sessions/join")
    async def join_session(
        body: FlightCodeRequest,
        request: Request,
        user: UserContext = Depends(current_user),
    ) -> dict[str, str]:
        """Join the newest active session for a flight."""
        state_container: AppContainer = request.app.state.container
        handle = await state_container.session_directory.join_session(
            body.flight_code, user
        )
        return _handle_payload(handle)

    @app.get("/sessions")
    async def list_sessions(
        request: Request, user: UserContext = Depends(current_user)
    ) -> dict[str, object]:
        """Return the caller's active sessions."""
        state_container: AppContainer = request.app.state.container
        sessions = await state_container.session_directory.my_sessions(user)
        return {"sessions": [_session_payload(session) for session in sessions]}

    @app.get("/sessions/{session_id}")
    async def session_detail(
        session_id: str, request: Request, user: UserContext = Depends(current_user)
    ) -> dict[str, object]:
        """Return one session."""
        state_container: AppContainer = request.app.state.container
        session = await state_container.session_directory.get_session(
            session_id, user
        )
        return _session_payload(session)

    @app.post("/sessions/{session_id}/scan")
    async def scan(
        session_id: str,
        body: ScanRequest,
        request: Request,
        user: UserContext = Depends(current_user),
    ) -> dict[str, object]:
        """Check a scanned code against the session's flight."""
        state_container: AppContainer = request.app.state.container
        session = await state_container.session_directory.get_session(
            session_id, user
        )
        outcome = verify_scan(body.code, session.flight_code)
        return {
            "status": outcome.status.value,
            "scanned": outcome.scanned,
            "expected": outcome.expected,
        }

    @app.post("/sessions/{session_id}/pax")
    async def board_pax(
        session_id: str,
        body: PaxRequest,
        request: Request,
        user: UserContext = Depends(current_user),
    ) -> dict[str, str]:
        """Board a passenger into the session's roster."""
        state_container: AppContainer = request.app.state.container
        await state_container.session_directory.get_session(session_id, user)
        pax_id = await state_container.roster_ledger.append_pax(
            session_id, body.name, body.seat, user, body.source
        )
        return {"pax_id": pax_id}

    @app.get("/sessions/{session_id}/pax")
    async def list_pax(
        session_id: str, request: Request, user: UserContext = Depends(current_user)
    ) -> dict[str, object]:
        """Return the most recently boarded passengers."""
        state_container: AppContainer = request.app.state.container
        await state_container.session_directory.get_session(session_id, user)
        records = await state_container.roster_ledger.recent_pax(session_id, user)
        return {"pax": [_pax_payload(record) for record in records]}

    @app.websocket("/sessions/live")
    async def sessions_live(websocket: WebSocket, token: str | None = None) -> None:
        """Stream the caller's sessions as whole snapshots."""
        state_container: AppContainer = websocket.app.state.container
        user = await _authorize_websocket(websocket, state_container, token)
        if user is None:
            return
        feed = state_container.session_directory.list_my_sessions(user)
        await _stream_feed(
            websocket,
            feed,
            lambda sessions: {"sessions": [_session_payload(s) for s in sessions]},
        )

    @app.websocket("/sessions/{session_id}/pax/live")
    async def pax_live(
        websocket: WebSocket, session_id: str, token: str | None = None
    ) -> None:
        """Stream the session's latest passengers as whole snapshots."""
        state_container: AppContainer = websocket.app.state.container
        user = await _authorize_websocket(websocket, state_container, token)
        if user is None:
            return
        try:
            await state_container.session_directory.get_session(session_id, user)
        except NoActiveSession:
            await websocket.close(code=_WS_NOT_FOUND)
            return
        feed = state_container.roster_ledger.watch_roster(session_id, user)
        await _stream_feed(
            websocket,
            feed,
            lambda records: {"pax": [_pax_payload(record) for record in records]},
        )

    return app


async def current_user(
    request: Request, authorization: str | None = Header(default=None)
) -> UserContext:
    """Resolve the bearer token on a request to the signed-in user."""
    container: AppContainer = request.app.state.container
    return await container.auth_service.resolve(_bearer_token(authorization))


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def _status_for(exc: BoardingError) -> int:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def _authorize_websocket(
    websocket: WebSocket, container: AppContainer, token: str | None
) -> UserContext | None:
    try:
        return await container.auth_service.resolve(token)
    except AuthRequired:
        await websocket.close(code=_WS_UNAUTHORIZED)
        return None


async def _stream_feed(
    websocket: WebSocket,
    feed: LiveFeed[T],
    render: Callable[[list[T]], dict[str, object]],
) -> None:
    """Send every feed snapshot until the client leaves or the feed closes."""
    await websocket.accept()
    watcher = asyncio.create_task(_close_on_disconnect(websocket, feed))
    close_code = status.WS_1000_NORMAL_CLOSURE
    try:
        async with feed:
            async for snapshot in feed:
                await websocket.send_json(render(snapshot))
    except WebSocketDisconnect:
        _logger.info("Feed client disconnected: %s", feed.name)
    except BoardingError as exc:
        _logger.warning("Feed %s failed: %s", feed.name, exc)
        close_code = status.WS_1011_INTERNAL_ERROR
        if _is_open(websocket):
            await websocket.send_json({"error": exc.code, "detail": str(exc)})
    finally:
        watcher.cancel()
        await feed.close()
        with suppress(asyncio.CancelledError):
            await watcher
    if _is_open(websocket):
        await websocket.close(code=close_code)


def _is_open(websocket: WebSocket) -> bool:
    return (
        websocket.client_state is WebSocketState.CONNECTED
        and websocket.application_state is WebSocketState.CONNECTED
    )


async def _close_on_disconnect(websocket: WebSocket, feed: LiveFeed[T]) -> None:
    try:
        while (await websocket.receive())["type"] != "websocket.disconnect":
            continue
    finally:
        await feed.close()


def _user_payload(user: UserContext) -> dict[str, str]:
    return {"user_id": user.uid, "username": user.username, "token": user.token}


def _handle_payload(handle: SessionHandle) -> dict[str, str]:
    return {"session_id": handle.session_id, "flight_code": handle.flight_code}


def _session_payload(session: SessionRecord) -> dict[str, object]:
    return {
        "id": session.id,
        "flight_code": session.flight_code,
        "owner_uid": session.owner_uid,
        "members": list(session.members),
        "active": session.active,
        "created_at": _isoformat(session.created_at),
        "updated_at": _isoformat(session.updated_at),
    }


def _pax_payload(record: PaxRecord) -> dict[str, object]:
    return {
        "id": record.id,
        "session_id": record.session_id,
        "name": record.name,
        "seat": record.seat,
        "boarded_by": record.boarded_by,
        "source": record.source.value,
        "created_at": _isoformat(record.created_at),
    }


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
