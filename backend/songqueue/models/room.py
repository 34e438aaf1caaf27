import time
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Union


def format_duration(seconds: Optional[Union[int, float]]) -> Optional[str]:
    if not seconds:
        return None
    seconds = int(seconds)
    return f"{seconds // 60}:{seconds % 60:02d}"


class _SongDisplay(BaseModel):
    thumbnail: Optional[str] = None
    channel: Optional[str] = None
    duration: Optional[str] = None # Human readable, e.g. "3:45"

    @field_validator("duration", mode="before")
    @classmethod
    def _numeric_duration(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return format_duration(value)
        return value


class SongSubmission(_SongDisplay):
    # What a client may send. id / added_at are always assigned server side.
    video_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    added_by: Optional[str] = None


class Song(_SongDisplay):
    id: str
    video_id: str
    title: str
    added_at: float
    added_by: str = "Guest" # Nickname


class Room(BaseModel):
    id: str
    admin_token: str
    host_name: str = "DJ"
    password_hash: Optional[str] = None
    queue: List[Song] = [] # Guest queue, FIFO
    fallback_playlist: List[Song] = [] # Replayed cyclically when the queue is empty
    fallback_index: int = 0
    current_song: Optional[Song] = None
    current_song_started_at: Optional[float] = None
    is_playing: bool = False
    is_playing_fallback: bool = False
    created_at: float
    last_activity: float = 0.0

    def touch(self, now: Optional[float] = None):
        self.last_activity = now if now is not None else time.time()

    def public_view(self) -> dict:
        return {
            "id": self.id,
            "host_name": self.host_name,
            "has_password": self.password_hash is not None,
            "queue": [s.model_dump() for s in self.queue],
            "current_song": self.current_song.model_dump() if self.current_song else None,
            "current_song_started_at": self.current_song_started_at,
            "is_playing": self.is_playing,
            "is_playing_fallback": self.is_playing_fallback,
        }

    def admin_view(self) -> dict:
        view = self.public_view()
        view.update({
            "admin_token": self.admin_token,
            "fallback_playlist": [s.model_dump() for s in self.fallback_playlist],
            "fallback_index": self.fallback_index,
            "created_at": self.created_at,
        })
        return view
