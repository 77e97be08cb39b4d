"""Socket.IO server and event handlers.

Handlers validate payloads, resolve the connection's ``ConnectionContext``
from the Socket.IO session and delegate to the ``SessionCoordinator`` stored
on ``sio.app.state`` (set by the lifespan).
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import socketio
from pydantic import ValidationError

from codelingo.coordinator import ConnectionContext, SessionCoordinator
from codelingo.exceptions import InvalidRequest, ProblemException
from codelingo.socket_events import (
    CLIENT_EVENTS,
    CodeChange,
    CursorMove,
    ErrorEvent,
    EventName,
    JoinRoom,
    NewComment,
    StartSession,
    TranslateBatch,
    TranslateError,
)

log = logging.getLogger(__name__)

# Module-level Socket.IO server; the client manager, CORS origins and
# sio.app are set in database.py lifespan
sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")
sio.app = None  # type: ignore[attr-defined]

Handler = Callable[..., Awaitable[None]]


def get_coordinator() -> SessionCoordinator:
    return sio.app.state.coordinator  # type: ignore[attr-defined]


def _describe(err: ValidationError) -> str:
    fields = ", ".join(
        ".".join(str(part) for part in error["loc"]) or "payload"
        for error in err.errors()
    )
    return f"Invalid or missing fields: {fields}"


async def emit_problem(sid: str, exc: ProblemException) -> None:
    """Send a connection-scoped error to ``sid`` only."""
    problem = exc.problem
    event = ErrorEvent(
        message=problem.detail or problem.title,
        problem=problem.model_dump(exclude_none=True),
    )
    await sio.emit(EventName.ERROR.value, event.model_dump(by_alias=True), to=sid)


def reports_problems(handler: Handler) -> Handler:
    """Turn ProblemExceptions and invalid payloads into an ``error`` event."""

    @functools.wraps(handler)
    async def wrapper(sid: str, *args: Any) -> None:
        try:
            await handler(sid, *args)
        except ValidationError as err:
            await emit_problem(sid, InvalidRequest.exception(_describe(err)))
        except ProblemException as exc:
            log.debug("%s rejected for %s: %s", handler.__name__, sid, exc)
            await emit_problem(sid, exc)

    return wrapper


async def get_context(sid: str) -> ConnectionContext:
    """Return the context of a joined connection or raise InvalidRequest."""
    session = await sio.get_session(sid)
    raw = session.get("context")
    if raw is None:
        raise InvalidRequest.exception("Join a room before sending room events")
    return ConnectionContext.model_validate(raw)


async def _optional_context(sid: str) -> ConnectionContext | None:
    session = await sio.get_session(sid)
    raw = session.get("context")
    return ConnectionContext.model_validate(raw) if raw is not None else None


# =============================================================================
# Connection Lifecycle Handlers
# =============================================================================


@sio.on("connect")
async def on_connect(sid: str, environ: dict, auth: dict | None = None) -> bool:
    await sio.save_session(sid, {"context": None})
    return True


@sio.on("disconnect")
async def on_disconnect(sid: str, *args: Any) -> None:
    ctx = await _optional_context(sid)
    try:
        await get_coordinator().disconnect(sid, ctx)
    except ProblemException as exc:
        log.warning("Disconnect cleanup for %s failed: %s", sid, exc)


# =============================================================================
# Room Events
# =============================================================================


@sio.on(EventName.JOIN_ROOM.value)
@reports_problems
async def on_join_room(sid: str, data: Any = None) -> None:
    payload = JoinRoom.model_validate(data)
    previous = await _optional_context(sid)
    ctx = await get_coordinator().join(payload, sid, previous)
    await sio.save_session(sid, {"context": ctx.model_dump()})


@sio.on(EventName.CODE_CHANGE.value)
@reports_problems
async def on_code_change(sid: str, data: Any = None) -> None:
    payload = CodeChange.model_validate(data)
    await get_coordinator().code_change(await get_context(sid), payload)


@sio.on(EventName.CURSOR_MOVE.value)
@reports_problems
async def on_cursor_move(sid: str, data: Any = None) -> None:
    payload = CursorMove.model_validate(data)
    await get_coordinator().cursor_move(await get_context(sid), payload)


@sio.on(EventName.START_SESSION.value)
@reports_problems
async def on_start_session(sid: str, data: Any = None) -> None:
    payload = StartSession.model_validate(data)
    await get_coordinator().start_session(await get_context(sid), payload)


@sio.on(EventName.NEW_COMMENT.value)
@reports_problems
async def on_new_comment(sid: str, data: Any = None) -> None:
    payload = NewComment.model_validate(data)
    await get_coordinator().new_comment(await get_context(sid), payload)


@sio.on(EventName.TRANSLATE_BATCH.value)
async def on_translate_batch(sid: str, data: Any = None) -> None:
    try:
        payload = TranslateBatch.model_validate(data)
    except ValidationError as err:
        await sio.emit(
            EventName.TRANSLATE_ERROR.value,
            TranslateError(error=_describe(err)).model_dump(by_alias=True),
            to=sid,
        )
        return
    ctx = await _optional_context(sid)
    await get_coordinator().translate_batch(sid, payload, ctx)


@sio.on("*")
async def on_unknown_event(event: str, sid: str, *args: Any) -> None:
    if event in {e.value for e in CLIENT_EVENTS}:
        return
    await emit_problem(sid, InvalidRequest.exception(f"Unknown event '{event}'"))
