"""Room REST API endpoints.

Thin wrappers around the room store. Join and leave also push the updated
member list to connected clients of the room.
"""

import logging

from fastapi import APIRouter, status

from codelingo.dependencies import CoordinatorDep, StoreDep
from codelingo.exceptions import (
    InvalidRequest,
    RoomNotFound,
    StoreUnavailable,
    problem_responses,
)
from codelingo.schemas import (
    LeaveRequest,
    MemberRequest,
    RoomCreateResponse,
    RoomSnapshot,
    StatusResponse,
)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/rooms", tags=["rooms"])


@router.post(
    "",
    response_model=RoomCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses=problem_responses(InvalidRequest, StoreUnavailable),
)
async def create_room(store: StoreDep, request: MemberRequest) -> RoomCreateResponse:
    """Create a room with the caller as its first member (the creator)."""
    state = await store.create_room(
        client_id=request.client_id,
        name=request.name,
        preferred_language=request.preferred_language,
    )
    return RoomCreateResponse(
        room_id=state.room_id, room=RoomSnapshot.from_state(state)
    )


@router.get(
    "/{room_id}",
    response_model=RoomSnapshot,
    responses=problem_responses(RoomNotFound, StoreUnavailable),
)
async def get_room(store: StoreDep, room_id: str) -> RoomSnapshot:
    """Get the current code, language and members of a room."""
    return RoomSnapshot.from_state(await store.get_room(room_id))


@router.post(
    "/{room_id}/join",
    response_model=RoomSnapshot,
    responses=problem_responses(InvalidRequest, RoomNotFound, StoreUnavailable),
)
async def join_room(
    store: StoreDep,
    coordinator: CoordinatorDep,
    room_id: str,
    request: MemberRequest,
) -> RoomSnapshot:
    """Add the caller to a room, or update their name and language on rejoin.

    A live Socket.IO connection of the member is left untouched.
    """
    state, is_new = await store.upsert_member(
        room_id,
        request.client_id,
        name=request.name,
        preferred_language=request.preferred_language,
        connection_id=None,
        is_active=False,
        update_presence=False,
    )
    await coordinator.broadcast_members(state)
    log.info(
        "%s %s room %s over HTTP",
        request.client_id,
        "joined" if is_new else "rejoined",
        room_id,
    )
    return RoomSnapshot.from_state(state)


@router.post(
    "/{room_id}/leave",
    response_model=StatusResponse,
    responses=problem_responses(InvalidRequest, RoomNotFound, StoreUnavailable),
)
async def leave_room(
    store: StoreDep,
    coordinator: CoordinatorDep,
    room_id: str,
    request: LeaveRequest,
) -> StatusResponse:
    """Mark the caller inactive in the room. The member record is kept."""
    state = await store.deactivate_member(room_id, request.client_id)
    await coordinator.broadcast_members(state)
    return StatusResponse()
