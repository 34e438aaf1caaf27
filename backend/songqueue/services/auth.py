import functools
import logging
import secrets
from songqueue.errors import InvalidInput
from songqueue.models.events import Outcome, Result
from songqueue.models.room import Room
from songqueue.services import room as room_service

logger = logging.getLogger(__name__)


def is_admin(room: Room, token) -> bool:
    if not token or not isinstance(token, str):
        return False
    return secrets.compare_digest(token.encode(), room.admin_token.encode())


def require_admin(func):
    """
    Turns fn(room, ...) -> notifications into fn(room_id, admin_token, ...) -> Result.
    The wrapped function only runs for a known room and a matching admin token,
    and must raise InvalidInput before touching the room if the payload is bad.
    """
    @functools.wraps(func)
    def wrapper(room_id, admin_token, *args, **kwargs) -> Result:
        room = room_service.get_room(room_id)
        if not room:
            return Result(Outcome.NOT_FOUND)
        if not is_admin(room, admin_token):
            logger.warning(f"Rejected {func.__name__} on room {room_id}: bad admin token")
            return Result(Outcome.DENIED)
        try:
            notifications = func(room, *args, **kwargs)
        except InvalidInput as e:
            logger.info(f"Rejected {func.__name__} on room {room_id}: {e.message}")
            return Result(Outcome.INVALID, reason=e.message)
        room.touch()
        return Result(Outcome.APPLIED, notifications)
    return wrapper
