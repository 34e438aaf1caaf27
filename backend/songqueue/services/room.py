import logging
import secrets
import time
from typing import Dict, List, Optional
from passlib.context import CryptContext
from songqueue.models.room import Room

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

ROOM_ID_BYTES = 6 # 8 url-safe characters
ADMIN_TOKEN_BYTES = 12 # 16 url-safe characters

# Process-wide store. Rooms are only ever removed by sweep_idle_rooms.
_rooms: Dict[str, Room] = {}


def _new_room_id() -> str:
    room_id = secrets.token_urlsafe(ROOM_ID_BYTES)
    while room_id in _rooms:
        room_id = secrets.token_urlsafe(ROOM_ID_BYTES)
    return room_id


def create_room(host_name: str = None, password: str = None) -> Room:
    now = time.time()
    room = Room(
        id=_new_room_id(),
        admin_token=secrets.token_urlsafe(ADMIN_TOKEN_BYTES),
        host_name=(host_name or "").strip() or "DJ",
        password_hash=pwd_context.hash(password) if password else None,
        created_at=now,
        last_activity=now,
    )
    _rooms[room.id] = room
    logger.info(f"Created room {room.id} for host {room.host_name}")
    return room


def get_room(room_id: str) -> Optional[Room]:
    if not isinstance(room_id, str):
        return None
    return _rooms.get(room_id)


def verify_password(room: Room, password: str) -> bool:
    if not room.password_hash:
        return True
    if not password:
        return False
    return pwd_context.verify(password, room.password_hash)


def sweep_idle_rooms(max_idle: float, now: float = None) -> List[str]:
    """
    Drops rooms with no activity for longer than max_idle seconds.
    A max_idle of 0 or less disables eviction.
    """
    if max_idle <= 0:
        return []
    now = now if now is not None else time.time()
    expired = [room_id for room_id, room in _rooms.items() if now - room.last_activity > max_idle]
    for room_id in expired:
        del _rooms[room_id]
        logger.info(f"Evicted idle room {room_id}")
    return expired


def room_count() -> int:
    return len(_rooms)


def clear():
    _rooms.clear()
