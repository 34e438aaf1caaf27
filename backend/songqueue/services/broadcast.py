import asyncio
import logging
import time
from typing import Dict, Iterable
import socketio
from songqueue.models.events import Notification
from songqueue.models.room import Room

logger = logging.getLogger(__name__)


class RoomBroadcaster:
    """
    Fans room notifications out to every session in a Socket.IO room.

    Callers hold lock(room_id) across mutate + publish, so every subscriber
    of a room sees notifications in the order the mutations were committed.
    Delivery is fire-and-forget: disconnected sessions just miss them.
    """

    def __init__(self, sio: socketio.AsyncServer):
        self.sio = sio
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock(self, room_id: str) -> asyncio.Lock:
        lock = self._locks.get(room_id)
        if lock is None:
            lock = self._locks[room_id] = asyncio.Lock()
        return lock

    def forget(self, room_id: str):
        self._locks.pop(room_id, None)

    async def publish(self, room_id: str, notifications: Iterable[Notification]):
        for n in notifications:
            await self.sio.emit(n.event, n.data, room=room_id)

    async def send_snapshot(self, sid: str, room: Room, admin: bool = False):
        state = room.admin_view() if admin else room.public_view()
        # Never hand the credential back over the socket
        state.pop("admin_token", None)
        await self.sio.emit("room_state", {"state": state, "server_time": time.time()}, to=sid)
