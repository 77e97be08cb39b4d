import uuid
from datetime import UTC, datetime

from sqlalchemy import TypeDecorator, UniqueConstraint
from sqlalchemy.types import DateTime
from sqlmodel import Field, SQLModel


def _now() -> datetime:
    return datetime.now(UTC)


def new_room_id() -> str:
    """Short opaque room id: the first 8 hex characters of a uuid4."""
    return uuid.uuid4().hex[:8]


class UTCDateTime(TypeDecorator):
    """SQLAlchemy type that ensures datetimes are always UTC-aware.

    SQLite strips timezone info on storage. This type decorator
    re-attaches UTC on load so consumers never see naive datetimes.
    """

    impl = DateTime
    cache_ok = True

    def process_result_value(
        self, value: datetime | None, dialect: object
    ) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class Room(SQLModel, table=True):
    """A collaboration room holding one shared code buffer."""

    id: str = Field(default_factory=new_room_id, primary_key=True)
    current_code: str = Field(default="")
    language: str = Field(default="javascript")
    created_at: datetime = Field(default_factory=_now, sa_type=UTCDateTime())
    updated_at: datetime = Field(default_factory=_now, sa_type=UTCDateTime())


class Member(SQLModel, table=True):
    """Participant record of a room.

    The autoincrement ``id`` fixes join order: the member with the lowest id
    is the room creator. Rejoins update the row in place and never change it.
    """

    __table_args__ = (UniqueConstraint("room_id", "client_id"),)

    id: int | None = Field(default=None, primary_key=True)
    room_id: str = Field(foreign_key="room.id", index=True)
    client_id: str
    name: str
    preferred_language: str
    connection_id: str | None = Field(default=None, index=True)
    is_active: bool = Field(default=True)
    joined_at: datetime = Field(default_factory=_now, sa_type=UTCDateTime())


class TranslationCacheEntry(SQLModel, table=True):
    """Persisted translation keyed by its fingerprint."""

    fingerprint: str = Field(primary_key=True)
    original_text: str
    target_locale: str
    translated_text: str
    room_id: str = Field(index=True)
    requesting_client_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=_now, sa_type=UTCDateTime())


class RoomState(SQLModel):
    """Snapshot of a room with its members in join order."""

    room: Room
    members: list[Member] = Field(default_factory=list)

    @property
    def room_id(self) -> str:
        return self.room.id

    @property
    def creator(self) -> Member | None:
        return self.members[0] if self.members else None

    def member(self, client_id: str) -> Member | None:
        for member in self.members:
            if member.client_id == client_id:
                return member
        return None

    def active_members(self) -> list[Member]:
        """Members that are active and hold a live connection."""
        return [m for m in self.members if m.is_active and m.connection_id]
