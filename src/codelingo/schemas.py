"""Pydantic models for the HTTP API.

All wire models serialize with camelCase aliases and accept either the alias
or the field name on input.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from codelingo.models import Member, RoomState, TranslationCacheEntry


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def not_blank(value: str) -> str:
    """Strip ``value`` and reject it when nothing is left."""
    if not value.strip():
        raise ValueError("must not be blank")
    return value.strip()


# =============================================================================
# Rooms
# =============================================================================


class MemberInfo(CamelModel):
    """Public view of a room member."""

    client_id: str
    name: str
    language: str
    connection_id: str | None = None
    is_active: bool = True

    @classmethod
    def from_member(cls, member: Member) -> "MemberInfo":
        return cls(
            client_id=member.client_id,
            name=member.name,
            language=member.preferred_language,
            connection_id=member.connection_id,
            is_active=member.is_active,
        )


class RoomSnapshot(CamelModel):
    """Room state as returned by the HTTP API."""

    room_id: str
    current_code: str
    language: str
    members: list[MemberInfo]
    creator_client_id: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_state(cls, state: RoomState) -> "RoomSnapshot":
        creator = state.creator
        return cls(
            room_id=state.room.id,
            current_code=state.room.current_code,
            language=state.room.language,
            members=[MemberInfo.from_member(m) for m in state.members],
            creator_client_id=creator.client_id if creator else None,
            created_at=state.room.created_at,
            updated_at=state.room.updated_at,
        )


class MemberRequest(CamelModel):
    """Body of create-room and join-room requests."""

    name: str
    preferred_language: str
    client_id: str

    @field_validator("name", "preferred_language", "client_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return not_blank(value)


class LeaveRequest(CamelModel):
    client_id: str

    @field_validator("client_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return not_blank(value)


class RoomCreateResponse(CamelModel):
    room_id: str
    room: RoomSnapshot


class StatusResponse(CamelModel):
    status: Literal["ok"] = "ok"


# =============================================================================
# Translation
# =============================================================================


class TranslateRequest(CamelModel):
    text: str
    target_locale: str
    source_locale: str | None = None

    @field_validator("text", "target_locale")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return not_blank(value)


class TranslateBatchRequest(CamelModel):
    texts: list[str] = Field(min_length=1)
    target_locale: str
    source_locale: str | None = None

    @field_validator("target_locale")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return not_blank(value)


class TranslationResult(CamelModel):
    original_text: str
    translated_text: str
    success: bool
    error: str | None = None


class TranslateBatchResponse(CamelModel):
    translations: list[TranslationResult]


class TranslationHistoryItem(CamelModel):
    fingerprint: str
    original_text: str
    translated_text: str
    target_locale: str
    room_id: str
    requesting_client_id: str
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: TranslationCacheEntry) -> "TranslationHistoryItem":
        return cls(
            fingerprint=entry.fingerprint,
            original_text=entry.original_text,
            translated_text=entry.translated_text,
            target_locale=entry.target_locale,
            room_id=entry.room_id,
            requesting_client_id=entry.requesting_client_id,
            created_at=entry.created_at,
        )


class TranslationHistoryResponse(CamelModel):
    items: list[TranslationHistoryItem]


# =============================================================================
# Utility
# =============================================================================


class HealthResponse(BaseModel):
    status: Literal["healthy"] = "healthy"
