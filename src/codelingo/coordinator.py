"""Room session coordinator.

Owns the room lifecycle of every connection (join, code and cursor fan-out,
disconnect, session start) and drives the comment translation pipeline:

1. Code changes are debounced per (room, sender client id).
2. At most one pass per (room, sender) runs at a time, claimed in Redis.
3. Comments are extracted from the latest persisted buffer.
4. Every other active member receives one ``translate:chunk`` per comment in
   their own locale, resolved through in-flight futures, the cache and
   finally the translation adapter.

Translation never blocks or fails an edit. Connection-scoped failures are
raised as ``ProblemException`` for the Socket.IO layer to report.
"""

import asyncio
import logging
import math
from collections.abc import Coroutine
from typing import Any

from pydantic import BaseModel
from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from codelingo.cache import TranslationCache, fingerprint
from codelingo.comments import Comment, CommentKind, extract_comments
from codelingo.config import Settings
from codelingo.exceptions import (
    Forbidden,
    InvalidRequest,
    ProblemException,
)
from codelingo.fanout import Fanout
from codelingo.locales import source_locale, to_locale
from codelingo.models import Member, RoomState, TranslationCacheEntry
from codelingo.redis import RedisKey
from codelingo.schemas import MemberInfo
from codelingo.socket_events import (
    CodeChange,
    CodeUpdate,
    CommentNew,
    CursorMove,
    CursorUpdate,
    EventName,
    InitialCode,
    JoinRoom,
    NewComment,
    RoomUsersList,
    RoomUsersUpdate,
    SessionStarted,
    StartSession,
    TranslateBatch,
    TranslateChunk,
    TranslateClear,
    TranslateComplete,
    TranslateError,
    TranslateStart,
    UserJoined,
    UserLeft,
)
from codelingo.store import RoomStore
from codelingo.translation import TranslationAdapter, TranslationOutcome

log = logging.getLogger(__name__)

PassKey = tuple[str, str]


class ConnectionContext(BaseModel):
    """Identity of a joined connection, stored in its Socket.IO session."""

    connection_id: str
    room_id: str
    client_id: str
    name: str
    preferred_language: str


def progress(index: int, total: int) -> int:
    """Percentage of ``total`` done after item ``index``, rounded half up."""
    return math.floor((index + 1) / total * 100 + 0.5)


def users_update(state: RoomState) -> RoomUsersUpdate:
    creator = state.creator
    return RoomUsersUpdate(
        members=[MemberInfo.from_member(m) for m in state.members],
        creator_connection_id=creator.connection_id if creator else None,
        creator_client_id=creator.client_id if creator else None,
    )


class SessionCoordinator:
    """Authoritative room session logic shared by Socket.IO and HTTP.

    Parameters
    ----------
    store : RoomStore
        Durable rooms and members.
    cache : TranslationCache
        Persistent translation cache.
    adapter : TranslationAdapter
        Timeout-bounded translation engine front.
    fanout : Fanout
        Event delivery.
    redis : AsyncRedis
        Holds the per-(room, sender) pass claims.
    settings : Settings
        Application settings (debounce, claim TTL, default code).
    """

    def __init__(
        self,
        store: RoomStore,
        cache: TranslationCache,
        adapter: TranslationAdapter,
        fanout: Fanout,
        redis: AsyncRedis,  # type: ignore[type-arg]
        settings: Settings,
    ) -> None:
        self.store = store
        self.cache = cache
        self.adapter = adapter
        self.fanout = fanout
        self.redis = redis
        self.settings = settings
        self._timers: dict[PassKey, asyncio.Task] = {}
        self._tasks: set[asyncio.Task] = set()
        self._inflight: dict[str, asyncio.Future[TranslationOutcome]] = {}

    # =========================================================================
    # Room lifecycle
    # =========================================================================

    async def join(
        self,
        payload: JoinRoom,
        connection_id: str,
        previous: ConnectionContext | None = None,
    ) -> ConnectionContext:
        """Upsert the member and bring the joining connection up to date.

        ``previous`` is the context the connection held before this join. When
        it belongs to another room, that membership is left once the new join
        has succeeded.
        """
        state, is_new = await self.store.upsert_member(
            payload.room_id,
            payload.client_id,
            name=payload.name,
            preferred_language=payload.language,
            connection_id=connection_id,
            is_active=True,
        )
        ctx = ConnectionContext(
            connection_id=connection_id,
            room_id=state.room_id,
            client_id=payload.client_id,
            name=payload.name,
            preferred_language=payload.language,
        )
        await self.fanout.enter_room(connection_id, state.room_id)

        code = state.room.current_code or self.settings.default_code
        await self.fanout.send_to_connection(
            connection_id,
            EventName.INITIAL_CODE,
            InitialCode(code=code, language=state.room.language),
        )
        others = [
            MemberInfo.from_member(m)
            for m in state.members
            if m.client_id != payload.client_id
        ]
        await self.fanout.send_to_connection(
            connection_id, EventName.ROOM_USERS_LIST, RoomUsersList(members=others)
        )
        update = users_update(state)
        await self.fanout.send_to_connection(
            connection_id, EventName.ROOM_USERS_UPDATE, update
        )
        await self.fanout.broadcast_to_room(
            state.room_id,
            EventName.ROOM_USERS_UPDATE,
            update,
            exclude_connection_id=connection_id,
        )
        if is_new:
            await self.fanout.broadcast_to_room(
                state.room_id,
                EventName.USER_JOINED,
                UserJoined(
                    client_id=payload.client_id,
                    name=payload.name,
                    language=payload.language,
                ),
                exclude_connection_id=connection_id,
            )
        log.info(
            "%s %s room %s as %s",
            payload.client_id,
            "joined" if is_new else "rejoined",
            state.room_id,
            connection_id,
        )
        if previous is not None and previous.room_id != state.room_id:
            await self.leave(previous)
        return ctx

    async def broadcast_members(
        self, state: RoomState, exclude_connection_id: str | None = None
    ) -> None:
        """Send the current member list to everyone in the room."""
        await self.fanout.broadcast_to_room(
            state.room_id,
            EventName.ROOM_USERS_UPDATE,
            users_update(state),
            exclude_connection_id=exclude_connection_id,
        )

    async def disconnect(
        self, connection_id: str, ctx: ConnectionContext | None = None
    ) -> None:
        """Mark the connection's members inactive and tell the rooms.

        Pending translation passes for the leaving sender are left to run.
        """
        room_ids = await self.store.remove_member_connection(connection_id)
        for room_id in room_ids:
            await self._announce_departure(room_id, connection_id, ctx)
        if room_ids:
            log.info("Connection %s left rooms %s", connection_id, room_ids)

    async def leave(self, ctx: ConnectionContext) -> None:
        """Take the connection out of its room; the member row is kept."""
        room_ids = await self.store.remove_member_connection(
            ctx.connection_id, room_id=ctx.room_id
        )
        await self.fanout.leave_room(ctx.connection_id, ctx.room_id)
        if room_ids:
            await self._announce_departure(ctx.room_id, ctx.connection_id, ctx)
            log.info("%s left room %s", ctx.client_id, ctx.room_id)

    async def _announce_departure(
        self, room_id: str, connection_id: str, ctx: ConnectionContext | None
    ) -> None:
        state = await self.store.get_room(room_id)
        await self.broadcast_members(state, exclude_connection_id=connection_id)
        if ctx is not None and ctx.room_id == room_id:
            await self.fanout.broadcast_to_room(
                room_id,
                EventName.USER_LEFT,
                UserLeft(client_id=ctx.client_id, name=ctx.name),
                exclude_connection_id=connection_id,
            )

    async def start_session(
        self, ctx: ConnectionContext, payload: StartSession
    ) -> None:
        """Let the room creator move everyone from the lobby into the editor."""
        _check_room(ctx, payload.room_id)
        state = await self.store.get_room(ctx.room_id)
        creator = state.creator
        if creator is None or creator.connection_id != ctx.connection_id:
            raise Forbidden.exception("Only the room creator can start the session")
        await self.fanout.broadcast_to_room(
            ctx.room_id, EventName.SESSION_STARTED, SessionStarted(room_id=ctx.room_id)
        )
        log.info("Session started in room %s", ctx.room_id)

    # =========================================================================
    # Editing
    # =========================================================================

    async def code_change(self, ctx: ConnectionContext, payload: CodeChange) -> None:
        """Persist the buffer, relay it to the others and queue translation."""
        _check_room(ctx, payload.room_id)
        await self.store.set_code(ctx.room_id, payload.code, payload.language)
        await self.fanout.broadcast_to_room(
            ctx.room_id,
            EventName.CODE_UPDATE,
            CodeUpdate(
                code=payload.code, client_id=ctx.client_id, language=payload.language
            ),
            exclude_connection_id=ctx.connection_id,
        )
        self.schedule_translation(ctx.room_id, ctx.client_id)

    async def cursor_move(self, ctx: ConnectionContext, payload: CursorMove) -> None:
        _check_room(ctx, payload.room_id)
        await self.fanout.broadcast_to_room(
            ctx.room_id,
            EventName.CURSOR_UPDATE,
            CursorUpdate(
                connection_id=ctx.connection_id,
                client_id=ctx.client_id,
                name=ctx.name,
                cursor=payload.cursor,
            ),
            exclude_connection_id=ctx.connection_id,
        )

    async def new_comment(self, ctx: ConnectionContext, payload: NewComment) -> None:
        """Announce one comment to the room and translate it for the others."""
        _check_room(ctx, payload.room_id)
        await self.fanout.broadcast_to_room(
            ctx.room_id,
            EventName.COMMENT_NEW,
            CommentNew(
                room_id=ctx.room_id,
                text=payload.text,
                line=payload.line,
                sender_client_id=ctx.client_id,
            ),
        )
        state = await self.store.get_room(ctx.room_id)
        comment = Comment(
            line=payload.line, text=payload.text, kind=CommentKind.SINGLE
        )
        await self._deliver(state, ctx.client_id, [comment])

    async def translate_batch(
        self,
        connection_id: str,
        payload: TranslateBatch,
        ctx: ConnectionContext | None = None,
    ) -> None:
        """Translate client-supplied texts for the requesting connection only.

        The target is ``targetLanguage`` or, for a joined connection, its
        preferred language. Fingerprints use the requester's client id.
        """
        requester = payload.client_id or (ctx.client_id if ctx else None)
        language = payload.target_language or (
            ctx.preferred_language if ctx else None
        )
        if requester is None or language is None:
            await self.fanout.send_to_connection(
                connection_id,
                EventName.TRANSLATE_ERROR,
                TranslateError(
                    error="Missing required fields: texts, clientId, targetLanguage"
                ),
            )
            return
        if payload.lines is not None and len(payload.lines) != len(payload.texts):
            await self.fanout.send_to_connection(
                connection_id,
                EventName.TRANSLATE_ERROR,
                TranslateError(error="lines must have one entry per text"),
            )
            return

        total = len(payload.texts)
        await self.fanout.send_to_connection(
            connection_id,
            EventName.TRANSLATE_START,
            TranslateStart(total=total, sender_client_id=requester),
        )
        try:
            outcomes = await self.resolve(
                payload.texts,
                target_locale=to_locale(language),
                room_id=payload.room_id,
                requesting_client_id=requester,
                source=source_locale(payload.source_language),
            )
        except (ProblemException, SQLAlchemyError) as err:
            log.error("Batch translation for %s failed: %s", requester, err)
            await self.fanout.send_to_connection(
                connection_id,
                EventName.TRANSLATE_ERROR,
                TranslateError(
                    error="Batch translation failed", sender_client_id=requester
                ),
            )
            return

        lines = payload.lines or list(range(total))
        for index, outcome in enumerate(outcomes):
            await self.fanout.send_to_connection(
                connection_id,
                EventName.TRANSLATE_CHUNK,
                _chunk(index, lines[index], total, outcome, requester, requester),
            )
        await self.fanout.send_to_connection(
            connection_id,
            EventName.TRANSLATE_COMPLETE,
            TranslateComplete(total=total, sender_client_id=requester),
        )

    # =========================================================================
    # Translation pipeline
    # =========================================================================

    def schedule_translation(self, room_id: str, sender_client_id: str) -> None:
        """(Re)arm the debounce timer for one sender in one room."""
        key = (room_id, sender_client_id)
        self._cancel_timer(key)
        self._timers[key] = self._spawn(self._debounce(key))

    def _cancel_timer(self, key: PassKey) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None and not timer.done():
            timer.cancel()

    async def _debounce(self, key: PassKey) -> None:
        await asyncio.sleep(self.settings.translation.debounce_seconds)
        if self._timers.get(key) is asyncio.current_task():
            del self._timers[key]
        # a started pass is never cancelled by a newer timer
        self._spawn(self.run_pass(*key))

    async def run_pass(self, room_id: str, sender_client_id: str) -> None:
        """Translate the room's current comments for every other member."""
        claim = RedisKey.translation_pass_inflight(room_id, sender_client_id)
        claimed = await self.redis.set(
            claim, "1", nx=True, ex=self.settings.translation.inflight_ttl_seconds
        )
        if not claimed:
            log.debug(
                "Pass for %s in %s already running, re-arming",
                sender_client_id,
                room_id,
            )
            self.schedule_translation(room_id, sender_client_id)
            return

        try:
            state = await self.store.get_room(room_id)
            comments = extract_comments(state.room.current_code, state.room.language)
            if not comments:
                clear = TranslateClear(sender_client_id=sender_client_id)
                for member in self._recipients(state, sender_client_id):
                    await self.fanout.send_to_connection(
                        member.connection_id,  # type: ignore[arg-type]
                        EventName.TRANSLATE_CLEAR,
                        clear,
                    )
                return
            await self._deliver(state, sender_client_id, comments)
        except (ProblemException, SQLAlchemyError) as err:
            log.error(
                "Translation pass in %s for %s failed: %s",
                room_id,
                sender_client_id,
                err,
            )
            await self.fanout.broadcast_to_room(
                room_id,
                EventName.TRANSLATE_ERROR,
                TranslateError(
                    error="Translation pass failed", sender_client_id=sender_client_id
                ),
            )
        finally:
            try:
                await self.redis.delete(claim)
            except RedisError as err:
                log.warning("Could not release pass claim %s: %s", claim, err)

    @staticmethod
    def _recipients(state: RoomState, sender_client_id: str) -> list[Member]:
        return [m for m in state.active_members() if m.client_id != sender_client_id]

    async def _deliver(
        self, state: RoomState, sender_client_id: str, comments: list[Comment]
    ) -> None:
        recipients = self._recipients(state, sender_client_id)
        if not recipients:
            return
        total = len(comments)
        start = TranslateStart(total=total, sender_client_id=sender_client_id)
        for member in recipients:
            await self.fanout.send_to_connection(
                member.connection_id,  # type: ignore[arg-type]
                EventName.TRANSLATE_START,
                start,
            )

        results = await asyncio.gather(
            *(
                self._deliver_to(state.room_id, sender_client_id, comments, member)
                for member in recipients
            ),
            return_exceptions=True,
        )

        complete = TranslateComplete(total=total, sender_client_id=sender_client_id)
        for member, result in zip(recipients, results, strict=True):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception):
                log.error(
                    "Delivering translations from %s to %s failed",
                    sender_client_id,
                    member.client_id,
                    exc_info=result,
                )
                await self.fanout.send_to_connection(
                    member.connection_id,  # type: ignore[arg-type]
                    EventName.TRANSLATE_ERROR,
                    TranslateError(
                        error="Translation pass failed",
                        sender_client_id=sender_client_id,
                    ),
                )
                continue
            await self.fanout.send_to_connection(
                member.connection_id,  # type: ignore[arg-type]
                EventName.TRANSLATE_COMPLETE,
                complete,
            )

    async def _deliver_to(
        self,
        room_id: str,
        sender_client_id: str,
        comments: list[Comment],
        member: Member,
    ) -> None:
        outcomes = await self.resolve(
            [c.text for c in comments],
            target_locale=to_locale(member.preferred_language),
            room_id=room_id,
            requesting_client_id=sender_client_id,
            source=self.settings.translation.default_source_locale,
        )
        total = len(comments)
        for index, comment in enumerate(comments):
            await self.fanout.send_to_connection(
                member.connection_id,  # type: ignore[arg-type]
                EventName.TRANSLATE_CHUNK,
                _chunk(
                    index,
                    comment.line,
                    total,
                    outcomes[index],
                    sender_client_id,
                    member.client_id,
                ),
            )

    async def resolve(
        self,
        texts: list[str],
        *,
        target_locale: str,
        room_id: str,
        requesting_client_id: str,
        source: str | None = None,
    ) -> list[TranslationOutcome]:
        """Translate ``texts`` with at most one engine call per fingerprint.

        Fingerprints already being translated by a concurrent pass are awaited;
        the rest are claimed, looked up in the cache, and the misses are sent
        to the adapter in one batch.
        """
        fps = [
            fingerprint(text, target_locale, room_id, requesting_client_id)
            for text in texts
        ]
        loop = asyncio.get_running_loop()
        waiting: dict[int, asyncio.Future[TranslationOutcome]] = {}
        owned: dict[str, list[int]] = {}
        # no await between the in-flight check and the claim
        for index, fp in enumerate(fps):
            if fp in owned:
                owned[fp].append(index)
            elif fp in self._inflight:
                waiting[index] = self._inflight[fp]
            else:
                owned[fp] = [index]
                self._inflight[fp] = loop.create_future()

        outcomes: list[TranslationOutcome | None] = [None] * len(texts)
        try:
            if owned:
                await self._resolve_owned(
                    owned,
                    texts,
                    outcomes,
                    target_locale,
                    room_id,
                    requesting_client_id,
                    source,
                )
        finally:
            for fp, indices in owned.items():
                future = self._inflight.pop(fp, None)
                if future is not None and not future.done():
                    outcome = outcomes[indices[0]] or TranslationOutcome.failed(
                        texts[indices[0]], "translation interrupted"
                    )
                    future.set_result(outcome)

        for index, future in waiting.items():
            outcomes[index] = await asyncio.shield(future)
        return [outcome for outcome in outcomes if outcome is not None]

    async def _resolve_owned(
        self,
        owned: dict[str, list[int]],
        texts: list[str],
        outcomes: list[TranslationOutcome | None],
        target_locale: str,
        room_id: str,
        requesting_client_id: str,
        source: str | None,
    ) -> None:
        cached = await self.cache.get_many(owned)
        misses: list[str] = []
        for fp, indices in owned.items():
            entry = cached.get(fp)
            if entry is None:
                misses.append(fp)
                continue
            hit = TranslationOutcome(
                original_text=texts[indices[0]],
                translated_text=entry.translated_text,
                success=True,
                from_cache=True,
            )
            self._settle(fp, indices, hit, outcomes)

        if not misses:
            return
        results = await self.adapter.translate_many(
            [texts[owned[fp][0]] for fp in misses], source, target_locale
        )
        for fp, outcome in zip(misses, results, strict=True):
            if outcome.success:
                try:
                    await self.cache.put(
                        TranslationCacheEntry(
                            fingerprint=fp,
                            original_text=outcome.original_text,
                            target_locale=target_locale,
                            translated_text=outcome.translated_text,
                            room_id=room_id,
                            requesting_client_id=requesting_client_id,
                        )
                    )
                except SQLAlchemyError as err:
                    log.warning("Could not cache translation %s: %s", fp[:12], err)
            self._settle(fp, owned[fp], outcome, outcomes)

    def _settle(
        self,
        fp: str,
        indices: list[int],
        outcome: TranslationOutcome,
        outcomes: list[TranslationOutcome | None],
    ) -> None:
        for index in indices:
            outcomes[index] = outcome
        future = self._inflight.pop(fp, None)
        if future is not None and not future.done():
            future.set_result(outcome)

    # =========================================================================
    # Background tasks
    # =========================================================================

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("Background translation task failed", exc_info=exc)

    async def drain(self) -> None:
        """Wait until every pending timer and pass has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel pending timers and wait for running passes."""
        for key in list(self._timers):
            self._cancel_timer(key)
        await self.drain()


def _check_room(ctx: ConnectionContext, room_id: str) -> None:
    if room_id != ctx.room_id:
        raise InvalidRequest.exception(
            f"Connection is in room '{ctx.room_id}', not '{room_id}'"
        )


def _chunk(
    index: int,
    line: int,
    total: int,
    outcome: TranslationOutcome,
    sender_client_id: str,
    receiver_client_id: str,
) -> TranslateChunk:
    return TranslateChunk(
        index=index,
        line=line,
        original_text=outcome.original_text,
        translated_text=outcome.translated_text,
        success=outcome.success,
        progress=progress(index, total),
        from_cache=outcome.from_cache,
        error=outcome.error,
        sender_client_id=sender_client_id,
        receiver_client_id=receiver_client_id,
    )
