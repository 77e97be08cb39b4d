"""Tests for Socket.IO fan-out helpers."""

from unittest.mock import MagicMock

import pytest

from codelingo.fanout import Fanout, room_channel
from codelingo.socket_events import EventName, SessionStarted


def test_room_channel():
    assert room_channel("ab12cd34") == "room:ab12cd34"


@pytest.mark.asyncio
async def test_broadcast_serializes_with_camel_case(mock_sio: MagicMock):
    fanout = Fanout(mock_sio)

    await fanout.broadcast_to_room(
        "ab12cd34",
        EventName.SESSION_STARTED,
        SessionStarted(room_id="ab12cd34"),
        exclude_connection_id="sid-a",
    )

    mock_sio.emit.assert_awaited_once_with(
        "session-started",
        {"roomId": "ab12cd34"},
        room="room:ab12cd34",
        skip_sid="sid-a",
    )


@pytest.mark.asyncio
async def test_send_to_connection(mock_sio: MagicMock):
    await Fanout(mock_sio).send_to_connection("sid-b", EventName.TRANSLATE_CLEAR)

    mock_sio.emit.assert_awaited_once_with("translate:clear", None, to="sid-b")


@pytest.mark.asyncio
async def test_enter_and_leave_room(mock_sio: MagicMock):
    fanout = Fanout(mock_sio)

    await fanout.enter_room("sid-a", "ab12cd34")
    await fanout.leave_room("sid-a", "ab12cd34")

    mock_sio.enter_room.assert_awaited_once_with("sid-a", "room:ab12cd34")
    mock_sio.leave_room.assert_awaited_once_with("sid-a", "room:ab12cd34")


def test_list_connections_in_room(mock_sio: MagicMock):
    mock_sio.manager.get_participants.return_value = iter(
        [("sid-a", "eio-a"), ("sid-b", "eio-b")]
    )

    assert Fanout(mock_sio).list_connections_in_room("ab12cd34") == ["sid-a", "sid-b"]
    mock_sio.manager.get_participants.assert_called_once_with("/", "room:ab12cd34")
