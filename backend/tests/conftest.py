"""
Shared fixtures. Every test starts with an empty room store and a fresh
search cache / rate limiter.
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from songqueue.services import room as room_service
from songqueue.services import search as search_service


@pytest.fixture(autouse=True)
def clean_state():
    room_service.clear()
    search_service.cache.clear()
    search_service.limiter.reset()
    yield
    room_service.clear()


@pytest.fixture()
def room():
    return room_service.create_room(host_name="Host")


def make_song(video_id: str = "dQw4w9WgXcQ", title: str = "Never Gonna Give You Up", **extra) -> dict:
    song = {
        "video_id": video_id,
        "title": title,
        "thumbnail": f"https://i.ytimg.com/vi/{video_id}/default.jpg",
        "channel": "Rick Astley",
        "duration": "3:33",
    }
    song.update(extra)
    return song


@pytest.fixture()
def sio():
    """Patches the Socket.IO server used by the app so handlers can be called directly."""
    from songqueue import main

    with patch.object(main.sio, "emit", new_callable=AsyncMock) as emit, \
         patch.object(main.sio, "enter_room", new_callable=AsyncMock) as enter_room, \
         patch.object(main.sio, "leave_room", new_callable=AsyncMock) as leave_room:
        main.sessions._sid_room.clear()
        main.broadcaster._locks.clear()
        yield SimpleNamespace(emit=emit, enter_room=enter_room, leave_room=leave_room)
