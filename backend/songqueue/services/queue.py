"""
Queue engine: every mutation of a room's queue, fallback playlist and playback state.

Mutations are synchronous and never suspend, so on a single event loop no two
of them can interleave. Each returns a Result carrying the notifications the
broadcast layer should emit to the room.
"""
import logging
import time
import uuid
from typing import Any, List, Optional
from pydantic import ValidationError
from songqueue.errors import InvalidInput
from songqueue.models.events import Notification, Outcome, Result
from songqueue.models.room import Room, Song, SongSubmission
from songqueue.services import room as room_service
from songqueue.services.auth import require_admin

logger = logging.getLogger(__name__)


# Notifications

def queue_updated(room: Room) -> Notification:
    return Notification("queue_updated", [s.model_dump() for s in room.queue])


def fallback_updated(room: Room) -> Notification:
    return Notification("fallback_updated", [s.model_dump() for s in room.fallback_playlist])


def fallback_index_updated(room: Room) -> Notification:
    return Notification("fallback_index_updated", room.fallback_index)


def now_playing(room: Room) -> Notification:
    return Notification("now_playing", {
        "song": room.current_song.model_dump() if room.current_song else None,
        "started_at": room.current_song_started_at,
        "is_playing_fallback": room.is_playing_fallback,
        "server_time": time.time(),
    })


def play_state_changed(room: Room) -> Notification:
    return Notification("play_state_changed", room.is_playing)


# Helpers

def _submission(song: Any) -> SongSubmission:
    if not isinstance(song, dict):
        raise InvalidInput("Song must be an object")
    try:
        return SongSubmission.model_validate(song)
    except ValidationError as e:
        raise InvalidInput(f"Invalid song: {e.error_count()} field error(s)")


def _new_entry(submission: SongSubmission, submitter_name: Optional[str] = None) -> Song:
    try:
        return Song(
            id=uuid.uuid4().hex[:10],
            video_id=submission.video_id,
            title=submission.title,
            thumbnail=submission.thumbnail,
            channel=submission.channel,
            duration=submission.duration,
            added_at=time.time(),
            added_by=submitter_name or submission.added_by or "Guest",
        )
    except ValidationError as e:
        raise InvalidInput(f"Invalid song: {e.error_count()} field error(s)")


def _permute(entries: List[Song], new_order: Any) -> List[Song]:
    if not isinstance(new_order, list):
        raise InvalidInput("Order must be a list")
    ids = []
    for item in new_order:
        song_id = item.get("id") if isinstance(item, dict) else item
        if not isinstance(song_id, str):
            raise InvalidInput("Order entries must be song ids")
        ids.append(song_id)

    by_id = {s.id: s for s in entries}
    if len(ids) != len(entries) or set(ids) != set(by_id):
        raise InvalidInput("Order is not a permutation of the current entries")
    return [by_id[song_id] for song_id in ids]


def _clamp_fallback_index(room: Room):
    if room.fallback_index >= len(room.fallback_playlist) or room.fallback_index < 0:
        room.fallback_index = 0


def _start(room: Room, song: Song, from_fallback: bool):
    room.current_song = song.model_copy(deep=True)
    room.current_song_started_at = time.time()
    room.is_playing = True
    room.is_playing_fallback = from_fallback


# Guest

def enqueue(room_id: str, song: Any, submitter_name: Optional[str] = None) -> Result:
    room = room_service.get_room(room_id)
    if not room:
        return Result(Outcome.NOT_FOUND)
    try:
        entry = _new_entry(_submission(song), submitter_name)
    except InvalidInput as e:
        return Result(Outcome.INVALID, reason=e.message)

    room.queue.append(entry)
    room.touch()
    logger.info(f"Song added to room {room_id}: {entry.title} ({entry.added_by})")
    return Result(Outcome.APPLIED, [queue_updated(room)])


# Admin

@require_admin
def remove_from_queue(room: Room, song_id: str) -> List[Notification]:
    room.queue = [s for s in room.queue if s.id != song_id]
    return [queue_updated(room)]


@require_admin
def reorder_queue(room: Room, new_order: Any) -> List[Notification]:
    room.queue = _permute(room.queue, new_order)
    return [queue_updated(room)]


@require_admin
def add_to_fallback(room: Room, song: Any) -> List[Notification]:
    submission = _submission(song)
    entry = _new_entry(submission, submission.added_by or room.host_name)
    room.fallback_playlist.append(entry)
    return [fallback_updated(room)]


@require_admin
def remove_from_fallback(room: Room, song_id: str) -> List[Notification]:
    old_index = room.fallback_index
    removed_before_cursor = sum(
        1 for i, s in enumerate(room.fallback_playlist) if s.id == song_id and i < old_index
    )
    room.fallback_playlist = [s for s in room.fallback_playlist if s.id != song_id]
    # Keep the same entry up next when something before it is removed
    room.fallback_index = old_index - removed_before_cursor
    _clamp_fallback_index(room)

    notifications = [fallback_updated(room)]
    if room.fallback_index != old_index:
        notifications.append(fallback_index_updated(room))
    return notifications


@require_admin
def reorder_fallback(room: Room, new_order: Any) -> List[Notification]:
    room.fallback_playlist = _permute(room.fallback_playlist, new_order)
    return [fallback_updated(room)]


@require_admin
def set_current_song(room: Room, song: Any) -> List[Notification]:
    submission = _submission(song)
    entry = _new_entry(submission, submission.added_by)
    if isinstance(song.get("id"), str) and song["id"]:
        # Played straight from a list; keep the entry id so clients can match it
        entry.id = song["id"]
    _start(room, entry, from_fallback=False)
    return [now_playing(room)]


@require_admin
def toggle_play(room: Room, is_playing: Any) -> List[Notification]:
    if not isinstance(is_playing, bool):
        raise InvalidInput("is_playing must be a boolean")
    if room.current_song is None:
        raise InvalidInput("Nothing is playing")
    room.is_playing = is_playing
    return [play_state_changed(room)]


@require_admin
def advance(room: Room) -> List[Notification]:
    """
    Plays the next song: guest queue first, then the fallback playlist
    (cyclically), else goes idle. Shared by play-next, skip and song-ended.
    """
    if room.queue:
        _start(room, room.queue.pop(0), from_fallback=False)
        return [now_playing(room), queue_updated(room)]

    if room.fallback_playlist:
        _clamp_fallback_index(room)
        _start(room, room.fallback_playlist[room.fallback_index], from_fallback=True)
        room.fallback_index = (room.fallback_index + 1) % len(room.fallback_playlist)
        return [now_playing(room), fallback_index_updated(room)]

    room.current_song = None
    room.current_song_started_at = None
    room.is_playing = False
    room.is_playing_fallback = False
    return [now_playing(room)]
