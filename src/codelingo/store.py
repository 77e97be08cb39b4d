"""Durable room store.

Rooms and their members live in SQL tables. Mutations are plain inserts,
conflict-aware inserts and updates, so concurrent handlers never need an
in-process lock: the database serializes them and the last writer wins.
"""

import contextlib
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime

from sqlalchemy import exc as sa_exc
from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from codelingo.exceptions import RoomNotFound, StoreUnavailable
from codelingo.models import Member, Room, RoomState, new_room_id

log = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 5


def dialect_insert(session: AsyncSession):
    """Return the ``insert`` construct supporting ON CONFLICT for this session."""
    dialect = session.bind.dialect.name if session.bind is not None else "sqlite"
    if dialect == "postgresql":
        return postgresql.insert
    return sqlite.insert


class RoomStore:
    """Async persistence for rooms and members.

    Parameters
    ----------
    session_maker : async_sessionmaker
        Factory producing SQLModel async sessions.
    """

    def __init__(self, session_maker: async_sessionmaker) -> None:
        self.session_maker = session_maker

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_maker() as session:
                yield session
        except (sa_exc.OperationalError, sa_exc.InterfaceError) as err:
            log.error("Room store unavailable: %s", err)
            raise StoreUnavailable.exception(
                "The room store is temporarily unavailable"
            ) from err

    async def _load(self, session: AsyncSession, room_id: str) -> RoomState:
        room = await session.get(Room, room_id, populate_existing=True)
        if room is None:
            raise RoomNotFound.exception(f"Room '{room_id}' not found")
        result = await session.execute(
            select(Member)
            .where(Member.room_id == room_id)
            .order_by(Member.id)  # type: ignore[arg-type]
            .execution_options(populate_existing=True)
        )
        return RoomState(room=room, members=list(result.scalars().all()))

    async def create_room(
        self,
        client_id: str,
        name: str,
        preferred_language: str,
        connection_id: str | None = None,
    ) -> RoomState:
        """Create a room whose single member is the creator."""
        async with self._session() as session:
            for _ in range(MAX_ID_ATTEMPTS):
                room_id = new_room_id()
                if await session.get(Room, room_id) is None:
                    break
            else:
                raise StoreUnavailable.exception("Could not allocate a room id")

            session.add(Room(id=room_id))
            await session.flush()
            session.add(
                Member(
                    room_id=room_id,
                    client_id=client_id,
                    name=name,
                    preferred_language=preferred_language,
                    connection_id=connection_id,
                    is_active=connection_id is not None,
                )
            )
            await session.commit()
            log.info("Created room %s for client %s", room_id, client_id)
            return await self._load(session, room_id)

    async def get_room(self, room_id: str) -> RoomState:
        async with self._session() as session:
            return await self._load(session, room_id)

    async def upsert_member(
        self,
        room_id: str,
        client_id: str,
        *,
        name: str,
        preferred_language: str,
        connection_id: str | None = None,
        is_active: bool = True,
        update_presence: bool = True,
    ) -> tuple[RoomState, bool]:
        """Insert or update the member identified by ``(room_id, client_id)``.

        With ``update_presence=False`` an existing member keeps its connection
        id and active flag; only name and language are merged.

        Returns
        -------
        tuple[RoomState, bool]
            The room after the upsert and whether the client was new to it.
        """
        async with self._session() as session:
            if await session.get(Room, room_id) is None:
                raise RoomNotFound.exception(f"Room '{room_id}' not found")

            # only the statement that actually inserts the row sees an id back
            insert = dialect_insert(session)
            inserted = await session.execute(
                insert(Member)
                .values(
                    room_id=room_id,
                    client_id=client_id,
                    name=name,
                    preferred_language=preferred_language,
                    connection_id=connection_id,
                    is_active=is_active,
                    joined_at=datetime.now(UTC),
                )
                .on_conflict_do_nothing(index_elements=["room_id", "client_id"])
                .returning(Member.id)
            )
            is_new = inserted.first() is not None

            if not is_new:
                merged: dict = {"name": name, "preferred_language": preferred_language}
                if update_presence:
                    merged["connection_id"] = connection_id
                    merged["is_active"] = is_active
                await session.execute(
                    update(Member)
                    .where(
                        Member.room_id == room_id,  # type: ignore[arg-type]
                        Member.client_id == client_id,  # type: ignore[arg-type]
                    )
                    .values(**merged)
                )
            await session.execute(
                update(Room)
                .where(Room.id == room_id)  # type: ignore[arg-type]
                .values(updated_at=datetime.now(UTC))
            )
            await session.commit()
            return await self._load(session, room_id), is_new

    async def remove_member_connection(
        self, connection_id: str, room_id: str | None = None
    ) -> list[str]:
        """Mark every member bound to ``connection_id`` inactive.

        With ``room_id`` only the membership in that room is touched.
        Returns the ids of the affected rooms. Member rows are kept.
        """
        conditions = [Member.connection_id == connection_id]
        if room_id is not None:
            conditions.append(Member.room_id == room_id)
        async with self._session() as session:
            result = await session.execute(select(Member.room_id).where(*conditions))
            room_ids = sorted(set(result.scalars().all()))
            if not room_ids:
                return []
            await session.execute(
                update(Member)
                .where(*conditions)  # type: ignore[arg-type]
                .values(connection_id=None, is_active=False)
            )
            await session.commit()
            return room_ids

    async def deactivate_member(self, room_id: str, client_id: str) -> RoomState:
        async with self._session() as session:
            room = await self._load(session, room_id)
            if room.member(client_id) is None:
                raise RoomNotFound.exception(
                    f"Client '{client_id}' is not a member of room '{room_id}'"
                )
            await session.execute(
                update(Member)
                .where(
                    Member.room_id == room_id,  # type: ignore[arg-type]
                    Member.client_id == client_id,  # type: ignore[arg-type]
                )
                .values(connection_id=None, is_active=False)
            )
            await session.commit()
            return await self._load(session, room_id)

    async def set_code(
        self, room_id: str, code: str, language: str | None = None
    ) -> None:
        """Replace the room buffer wholesale; the last write wins."""
        values: dict = {"current_code": code, "updated_at": datetime.now(UTC)}
        if language:
            values["language"] = language
        async with self._session() as session:
            result = await session.execute(
                update(Room)
                .where(Room.id == room_id)  # type: ignore[arg-type]
                .values(**values)
            )
            await session.commit()
            if result.rowcount == 0:
                raise RoomNotFound.exception(f"Room '{room_id}' not found")
