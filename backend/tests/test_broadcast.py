import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import make_song
from songqueue.models.events import Notification
from songqueue.services import queue
from songqueue.services.broadcast import RoomBroadcaster


class RecordingServer:
    """Stands in for socketio.AsyncServer; yields on every emit like real I/O would."""

    def __init__(self):
        self.sent = []

    async def emit(self, event, data=None, room=None, to=None, **kwargs):
        await asyncio.sleep(0)
        self.sent.append((event, data, room or to))


@pytest.mark.asyncio
async def test_publish_emits_in_order_to_room():
    sio = MagicMock()
    sio.emit = AsyncMock()
    broadcaster = RoomBroadcaster(sio)

    await broadcaster.publish("room-a", [Notification("now_playing", {"song": None}), Notification("queue_updated", [])])

    assert [c.args[0] for c in sio.emit.call_args_list] == ["now_playing", "queue_updated"]
    assert all(c.kwargs["room"] == "room-a" for c in sio.emit.call_args_list)


@pytest.mark.asyncio
async def test_concurrent_mutations_are_delivered_in_commit_order(room):
    sio = RecordingServer()
    broadcaster = RoomBroadcaster(sio)
    commits = []

    async def guest(name):
        async with broadcaster.lock(room.id):
            result = queue.enqueue(room.id, make_song(name), name)
            commits.append(room.queue[-1].id)
            await broadcaster.publish(room.id, result.notifications)

    await asyncio.gather(*(guest(f"guest{i}") for i in range(5)))

    # Each queue_updated carries every commit so far, in order
    delivered = [[s["id"] for s in data] for event, data, _ in sio.sent]
    assert delivered == [commits[:i + 1] for i in range(5)]


@pytest.mark.asyncio
async def test_scenario_d_simultaneous_enqueues(room):
    sio = RecordingServer()
    broadcaster = RoomBroadcaster(sio)

    async def guest(name):
        async with broadcaster.lock(room.id):
            result = queue.enqueue(room.id, make_song("same-video"), name)
            await broadcaster.publish(room.id, result.notifications)

    await asyncio.gather(guest("Alice"), guest("Bob"))

    assert [s.added_by for s in room.queue] == ["Alice", "Bob"]
    assert room.queue[0].id != room.queue[1].id
    assert len(sio.sent) == 2


def test_lock_is_per_room():
    broadcaster = RoomBroadcaster(MagicMock())

    assert broadcaster.lock("a") is broadcaster.lock("a")
    assert broadcaster.lock("a") is not broadcaster.lock("b")

    broadcaster.forget("a")
    assert "a" not in broadcaster._locks


@pytest.mark.asyncio
async def test_snapshot_never_carries_admin_token(room):
    sio = RecordingServer()
    broadcaster = RoomBroadcaster(sio)
    queue.enqueue(room.id, make_song(), "Alice")

    await broadcaster.send_snapshot("sid1", room)
    await broadcaster.send_snapshot("sid2", room, admin=True)

    (event, guest_payload, target), (_, admin_payload, _) = sio.sent
    assert event == "room_state"
    assert target == "sid1"
    assert guest_payload["state"]["queue"][0]["added_by"] == "Alice"
    assert "fallback_playlist" not in guest_payload["state"]
    assert admin_payload["state"]["fallback_index"] == 0
    for payload in (guest_payload, admin_payload):
        assert "admin_token" not in payload["state"]
        assert "server_time" in payload
