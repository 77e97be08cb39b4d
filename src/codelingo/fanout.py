"""Presence and broadcast fan-out over Socket.IO rooms."""

import logging
from typing import Any

import socketio
from pydantic import BaseModel

from codelingo.socket_events import EventName

log = logging.getLogger(__name__)


def room_channel(room_id: str) -> str:
    """Get Socket.IO room channel name."""
    return f"room:{room_id}"


def _dump(payload: BaseModel | dict | str | None) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump(by_alias=True, mode="json")
    return payload


class Fanout:
    """Deliver events to one connection or to every connection in a room.

    Parameters
    ----------
    sio : socketio.AsyncServer
        Server whose client manager (in-memory or Redis) performs delivery.
    """

    def __init__(self, sio: socketio.AsyncServer) -> None:
        self.sio = sio

    async def broadcast_to_room(
        self,
        room_id: str,
        event: EventName,
        payload: BaseModel | dict | None = None,
        exclude_connection_id: str | None = None,
    ) -> None:
        """Emit ``event`` to the room, optionally skipping one connection."""
        await self.sio.emit(
            event.value,
            _dump(payload),
            room=room_channel(room_id),
            skip_sid=exclude_connection_id,
        )

    async def send_to_connection(
        self,
        connection_id: str,
        event: EventName,
        payload: BaseModel | dict | None = None,
    ) -> None:
        await self.sio.emit(event.value, _dump(payload), to=connection_id)

    def list_connections_in_room(self, room_id: str) -> list[str]:
        """Connection ids currently subscribed to the room on this process."""
        participants = self.sio.manager.get_participants("/", room_channel(room_id))
        return [sid for sid, _eio_sid in participants]

    async def enter_room(self, connection_id: str, room_id: str) -> None:
        await self.sio.enter_room(connection_id, room_channel(room_id))
        log.debug("Connection %s entered room %s", connection_id, room_id)

    async def leave_room(self, connection_id: str, room_id: str) -> None:
        await self.sio.leave_room(connection_id, room_channel(room_id))
