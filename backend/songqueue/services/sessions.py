from typing import Dict, Optional, Set


class SessionRegistry:
    """Maps socket sessions to the single room each one is subscribed to."""

    def __init__(self):
        self._sid_room: Dict[str, str] = {}

    def attach(self, sid: str, room_id: str) -> Optional[str]:
        """Subscribes sid to room_id and returns the room it was in before, if any."""
        previous = self._sid_room.get(sid)
        self._sid_room[sid] = room_id
        return previous if previous != room_id else None

    def detach(self, sid: str) -> Optional[str]:
        return self._sid_room.pop(sid, None)

    def room_of(self, sid: str) -> Optional[str]:
        return self._sid_room.get(sid)

    def members(self, room_id: str) -> Set[str]:
        return {sid for sid, rid in self._sid_room.items() if rid == room_id}
