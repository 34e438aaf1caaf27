import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
import socketio
from songqueue import config
from songqueue.errors import Forbidden, NotFound, SongQueueError
from songqueue.models.events import Outcome, Result
from songqueue.services import auth
from songqueue.services import queue
from songqueue.services import room as room_service
from songqueue.services import search as search_service
from songqueue.services.broadcast import RoomBroadcaster
from songqueue.services.sessions import SessionRegistry

# Configure logging
logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

origins = config.ALLOWED_ORIGINS

sio = socketio.AsyncServer(async_mode='asgi', cors_allowed_origins=origins if origins != ["*"] else "*")
broadcaster = RoomBroadcaster(sio)
sessions = SessionRegistry()


async def _evict_room(room_id: str):
    for sid in sessions.members(room_id):
        sessions.detach(sid)
        await sio.leave_room(sid, room_id)
    broadcaster.forget(room_id)


async def sweep_rooms(now: float = None) -> list:
    evicted = room_service.sweep_idle_rooms(config.ROOM_IDLE_TIMEOUT, now=now)
    for room_id in evicted:
        await _evict_room(room_id)
    if evicted:
        logger.info(f"Swept {len(evicted)} idle room(s), {room_service.room_count()} left")
    return evicted


async def _sweep_idle_rooms():
    while True:
        await asyncio.sleep(config.ROOM_SWEEP_INTERVAL)
        await sweep_rooms()


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = None
    if config.ROOM_IDLE_TIMEOUT > 0:
        logger.info(f"Evicting rooms idle for more than {config.ROOM_IDLE_TIMEOUT}s")
        sweeper = asyncio.create_task(_sweep_idle_rooms())
    yield
    if sweeper:
        sweeper.cancel()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

socket_app = socketio.ASGIApp(sio, app)


@app.exception_handler(SongQueueError)
async def songqueue_error_handler(request: Request, exc: SongQueueError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# REST API
class CreateRoomRequest(BaseModel):
    host_name: Optional[str] = None
    password: Optional[str] = None


@app.post("/api/rooms")
async def create_room_endpoint(body: CreateRoomRequest):
    r = room_service.create_room(host_name=body.host_name, password=body.password)
    return {"room_id": r.id, "admin_token": r.admin_token}


@app.get("/api/rooms/{room_id}")
async def get_room_endpoint(room_id: str, x_room_password: Optional[str] = Header(default=None)):
    r = room_service.get_room(room_id)
    if not r:
        raise NotFound("Room not found")
    if not room_service.verify_password(r, x_room_password):
        raise Forbidden("Invalid room password")
    return r.public_view()


@app.get("/api/rooms/{room_id}/admin")
async def get_admin_room_endpoint(room_id: str, x_admin_token: Optional[str] = Header(default=None)):
    r = room_service.get_room(room_id)
    if not r:
        raise NotFound("Room not found")
    if not auth.is_admin(r, x_admin_token):
        raise Forbidden("Invalid admin token")
    return r.admin_view()


@app.get("/api/youtube/search")
async def search_endpoint(q: str = ""):
    return await search_service.search(q)


@app.get("/api/youtube/playlist")
async def playlist_endpoint():
    return JSONResponse(status_code=501, content={
        "error": "Playlist import is not supported. Please add songs individually by searching.",
        "type": "not_supported",
    })


# Socket Events
def _payload(data) -> dict:
    return data if isinstance(data, dict) else {}


async def _apply(sid, event: str, room_id, action, *args) -> dict:
    """
    Runs a queue engine action under the room's lock and fans out its
    notifications. Returns the ack; rejected actions are otherwise silent.
    """
    if not room_service.get_room(room_id):
        result = Result(Outcome.NOT_FOUND)
    else:
        async with broadcaster.lock(room_id):
            result = action(room_id, *args)
            if result.applied:
                await broadcaster.publish(room_id, result.notifications)

    if not result.applied:
        logger.info(f"Ignored {event} from {sid} for room {room_id}: {result.outcome.value}")
    return result.ack()


async def _admin_action(sid, event: str, data, action, *fields):
    data = _payload(data)
    args = [data.get(f) for f in fields]
    return await _apply(sid, event, data.get("room_id"), action, data.get("admin_token"), *args)


@sio.event
async def connect(sid, environ):
    logger.info(f"Client {sid} connected")


@sio.event
async def disconnect(sid, reason=None):
    logger.info(f"Client {sid} disconnected")
    room_id = sessions.detach(sid)
    if room_id:
        logger.info(f"Removing session {sid} from room {room_id}")


@sio.event
async def join_room(sid, data):
    try:
        if isinstance(data, str):
            data = {"room_id": data}
        data = _payload(data)
        room_id = data.get("room_id")

        logger.info(f"Join request: sid={sid}, room={room_id}")

        room = room_service.get_room(room_id)
        if not room:
            logger.warning(f"Room {room_id} not found for join request")
            await sio.emit("error", {"message": "Room not found"}, to=sid)
            return {"ok": False, "outcome": Outcome.NOT_FOUND.value}

        if not room_service.verify_password(room, data.get("password")):
            logger.warning(f"Invalid password for room {room_id}")
            await sio.emit("error", {"message": "Invalid password"}, to=sid)
            return {"ok": False, "outcome": Outcome.DENIED.value}

        async with broadcaster.lock(room_id):
            room.touch()
            previous = sessions.attach(sid, room_id)
            if previous:
                await sio.leave_room(sid, previous)
            await sio.enter_room(sid, room_id)
            await broadcaster.send_snapshot(sid, room, admin=auth.is_admin(room, data.get("admin_token")))

        logger.info(f"Session {sid} joined room {room_id}")
        return {"ok": True, "outcome": Outcome.APPLIED.value}
    except Exception as e:
        logger.error(f"Error in join_room: {e}", exc_info=True)
        await sio.emit("error", {"message": "Internal server error during join"}, to=sid)


@sio.event
async def add_song(sid, data):
    data = _payload(data)
    return await _apply(sid, "add_song", data.get("room_id"), queue.enqueue, data.get("song"), data.get("added_by"))


@sio.event
async def remove_song(sid, data):
    return await _admin_action(sid, "remove_song", data, queue.remove_from_queue, "song_id")


@sio.event
async def reorder_queue(sid, data):
    return await _admin_action(sid, "reorder_queue", data, queue.reorder_queue, "queue")


@sio.event
async def play_next(sid, data):
    return await _admin_action(sid, "play_next", data, queue.advance)


@sio.event
async def skip_song(sid, data):
    return await _admin_action(sid, "skip_song", data, queue.advance)


@sio.event
async def song_ended(sid, data):
    return await _admin_action(sid, "song_ended", data, queue.advance)


@sio.event
async def set_current_song(sid, data):
    return await _admin_action(sid, "set_current_song", data, queue.set_current_song, "song")


@sio.event
async def add_to_fallback(sid, data):
    return await _admin_action(sid, "add_to_fallback", data, queue.add_to_fallback, "song")


@sio.event
async def remove_from_fallback(sid, data):
    return await _admin_action(sid, "remove_from_fallback", data, queue.remove_from_fallback, "song_id")


@sio.event
async def reorder_fallback(sid, data):
    return await _admin_action(sid, "reorder_fallback", data, queue.reorder_fallback, "playlist")


@sio.event
async def toggle_play(sid, data):
    return await _admin_action(sid, "toggle_play", data, queue.toggle_play, "is_playing")


# Serve the built client, if there is one. Mounted last so /api routes win.
if os.path.isdir(config.CLIENT_BUILD_DIR):
    app.mount("/", StaticFiles(directory=config.CLIENT_BUILD_DIR, html=True), name="client")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(socket_app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())
