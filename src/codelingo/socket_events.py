"""Socket.IO event names and payload models.

The set of events is closed: anything not listed in ``EventName`` is
rejected. Payloads use camelCase on the wire.
"""

import enum

from pydantic import Field, field_validator

from codelingo.schemas import CamelModel, MemberInfo, not_blank

PROTOCOL_VERSION = 1


class EventName(str, enum.Enum):
    # client -> server
    JOIN_ROOM = "join-room"
    CODE_CHANGE = "code-change"
    CURSOR_MOVE = "cursor-move"
    START_SESSION = "start-session"
    NEW_COMMENT = "new-comment"
    TRANSLATE_BATCH = "translate:batch"

    # server -> client
    INITIAL_CODE = "initial-code"
    CODE_UPDATE = "code-update"
    CURSOR_UPDATE = "cursor-update"
    ROOM_USERS_LIST = "room-users-list"
    ROOM_USERS_UPDATE = "room-users-update"
    USER_JOINED = "user-joined"
    USER_LEFT = "user-left"
    SESSION_STARTED = "session-started"
    COMMENT_NEW = "comment:new"
    TRANSLATE_START = "translate:start"
    TRANSLATE_CHUNK = "translate:chunk"
    TRANSLATE_COMPLETE = "translate:complete"
    TRANSLATE_CLEAR = "translate:clear"
    TRANSLATE_ERROR = "translate:error"
    ERROR = "error"


CLIENT_EVENTS = frozenset(
    {
        EventName.JOIN_ROOM,
        EventName.CODE_CHANGE,
        EventName.CURSOR_MOVE,
        EventName.START_SESSION,
        EventName.NEW_COMMENT,
        EventName.TRANSLATE_BATCH,
    }
)


# =============================================================================
# Request Models (client -> server)
# =============================================================================


class JoinRoom(CamelModel):
    """Join a room. All four fields are required and must not be blank."""

    room_id: str
    name: str
    language: str
    client_id: str

    @field_validator("room_id", "name", "language", "client_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return not_blank(value)


class CodeChange(CamelModel):
    """Replace the shared buffer."""

    room_id: str
    code: str
    language: str | None = None


class CursorPosition(CamelModel):
    line: int = Field(ge=0)
    column: int = Field(ge=0)


class CursorMove(CamelModel):
    room_id: str
    cursor: CursorPosition


class StartSession(CamelModel):
    room_id: str


class NewComment(CamelModel):
    """Explicitly announce one comment to the room."""

    room_id: str
    text: str
    line: int = Field(default=0, ge=0)

    @field_validator("text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return not_blank(value)


class TranslateBatch(CamelModel):
    """Client-driven translation of a list of texts into the requester's language.

    ``lines`` is aligned with ``texts`` when given.
    """

    texts: list[str] = Field(min_length=1)
    room_id: str
    client_id: str | None = None
    lines: list[int] | None = None
    target_language: str | None = None
    source_language: str | None = None


# =============================================================================
# Broadcast Models (server -> clients)
# =============================================================================


class InitialCode(CamelModel):
    code: str
    language: str


class CodeUpdate(CamelModel):
    code: str
    client_id: str
    language: str | None = None


class CursorUpdate(CamelModel):
    connection_id: str
    client_id: str
    name: str
    cursor: CursorPosition


class RoomUsersList(CamelModel):
    """Members other than the receiving connection."""

    members: list[MemberInfo]


class RoomUsersUpdate(CamelModel):
    members: list[MemberInfo]
    creator_connection_id: str | None = None
    creator_client_id: str | None = None


class UserJoined(CamelModel):
    client_id: str
    name: str
    language: str


class UserLeft(CamelModel):
    client_id: str
    name: str


class SessionStarted(CamelModel):
    room_id: str


class CommentNew(CamelModel):
    room_id: str
    text: str
    line: int
    sender_client_id: str


class TranslateStart(CamelModel):
    total: int
    sender_client_id: str | None = None


class TranslateChunk(CamelModel):
    index: int
    line: int
    original_text: str
    translated_text: str
    success: bool
    progress: int
    from_cache: bool = False
    error: str | None = None
    sender_client_id: str
    receiver_client_id: str


class TranslateComplete(CamelModel):
    total: int
    sender_client_id: str | None = None
    message: str = "Translation completed"


class TranslateClear(CamelModel):
    sender_client_id: str


class TranslateError(CamelModel):
    error: str
    sender_client_id: str | None = None


class ErrorEvent(CamelModel):
    """Connection-scoped error; ``problem`` is an RFC 9457 problem body."""

    message: str
    problem: dict | None = None
