from songqueue.services import room as room_service


def test_create_room_defaults():
    room = room_service.create_room(host_name="  DJ Alice  ")

    assert room_service.get_room(room.id) is room
    assert room.host_name == "DJ Alice"
    assert room.queue == []
    assert room.fallback_playlist == []
    assert room.fallback_index == 0
    assert room.current_song is None
    assert room.current_song_started_at is None
    assert room.is_playing is False
    assert room.is_playing_fallback is False
    assert room.password_hash is None


def test_blank_host_name_falls_back_to_dj():
    assert room_service.create_room(host_name="").host_name == "DJ"
    assert room_service.create_room().host_name == "DJ"


def test_ids_and_tokens_are_unique_and_long_enough():
    rooms = [room_service.create_room("Host") for _ in range(50)]

    assert len({r.id for r in rooms}) == 50
    assert len({r.admin_token for r in rooms}) == 50
    assert all(len(r.id) >= 8 for r in rooms)
    assert all(len(r.admin_token) >= 16 for r in rooms)
    assert room_service.room_count() == 50


def test_get_room_unknown_or_bad_id():
    assert room_service.get_room("missing") is None
    assert room_service.get_room(None) is None
    assert room_service.get_room(["not", "hashable"]) is None


def test_public_view_hides_credentials():
    room = room_service.create_room("Host", password="secret")
    view = room.public_view()

    assert "admin_token" not in view
    assert "password_hash" not in view
    assert "fallback_playlist" not in view
    assert view["has_password"] is True
    assert room.admin_token not in str(view)


def test_admin_view_includes_fallback_state():
    room = room_service.create_room("Host")
    view = room.admin_view()

    assert view["admin_token"] == room.admin_token
    assert view["fallback_playlist"] == []
    assert view["fallback_index"] == 0


def test_password_verification():
    room = room_service.create_room("Host", password="hunter2")

    assert room.password_hash != "hunter2"
    assert room_service.verify_password(room, "hunter2")
    assert not room_service.verify_password(room, "wrong")
    assert not room_service.verify_password(room, None)


def test_open_room_needs_no_password():
    room = room_service.create_room("Host")
    assert room_service.verify_password(room, None)


def test_sweep_disabled_by_default():
    room = room_service.create_room("Host")
    assert room_service.sweep_idle_rooms(0, now=room.last_activity + 10 ** 6) == []
    assert room_service.get_room(room.id) is room


def test_sweep_evicts_only_idle_rooms():
    idle = room_service.create_room("Idle")
    active = room_service.create_room("Active")
    idle.touch(now=1000.0)
    active.touch(now=1500.0)

    evicted = room_service.sweep_idle_rooms(300, now=1600.0)

    assert evicted == [idle.id]
    assert room_service.get_room(idle.id) is None
    assert room_service.get_room(active.id) is active
