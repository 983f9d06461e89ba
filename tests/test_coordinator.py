"""Tests for the session coordinator against a fake transport."""

import anyio
import pytest

from chatrelay import SessionCoordinator
from chatrelay.constants import ERROR_MESSAGES, MAX_HISTORY_MESSAGES, POLICY_VIOLATION_CLOSE_CODE

from .conftest import FakeWebSocket

pytestmark = pytest.mark.anyio


async def create_room(coordinator, session, websocket, name="Lobby", max_users=None) -> str:
    payload = {"roomName": name}
    if max_users is not None:
        payload["maxUsers"] = max_users
    await coordinator.dispatch(session, "create_room", payload)
    return websocket.last("room_created")["roomCode"]


async def join(coordinator, session, code, username) -> None:
    await coordinator.dispatch(session, "join_room", {"roomCode": code, "username": username})


class TestConnect:
    async def test_accepted_session_gets_room_listing(self, connect) -> None:
        session, websocket = await connect("10.0.0.1")

        assert session is not None
        assert websocket.names()[0] == "available_rooms"
        assert websocket.events("available_rooms") == [[]]

    async def test_host_info_is_sent_after_listing(self, connect) -> None:
        _, websocket = await connect("10.0.0.1")
        await anyio.sleep(0.01)

        assert websocket.names() == ["available_rooms", "host_info"]
        assert websocket.last("host_info") == {"ip": "10.0.0.1", "host": "host-10.0.0.1"}

    async def test_lookup_disabled_reports_identity(self, hub) -> None:
        coordinator = SessionCoordinator(transport=hub, hostname_lookup=False)
        websocket = FakeWebSocket()
        await coordinator.connect(websocket, "10.0.0.1", "10.0.0.1")
        await anyio.sleep(0.01)

        assert websocket.last("host_info") == {"ip": "10.0.0.1", "host": "10.0.0.1"}

    async def test_slow_lookup_does_not_gate_connection(self, hub) -> None:
        release = anyio.Event()

        async def slow_resolver(address: str, fallback: str) -> str:
            await release.wait()
            return "late.example"

        coordinator = SessionCoordinator(transport=hub, resolver=slow_resolver, hostname_lookup=True)
        websocket = FakeWebSocket()
        session = await coordinator.connect(websocket, "10.0.0.1", "10.0.0.1")
        await coordinator.dispatch(session, "get_rooms", {})

        assert websocket.names() == ["available_rooms", "available_rooms"]

        release.set()
        await anyio.sleep(0.01)
        assert websocket.last("host_info")["host"] == "late.example"

    async def test_disconnect_cancels_pending_lookup(self, hub) -> None:
        async def never(address: str, fallback: str) -> str:
            await anyio.sleep_forever()

        coordinator = SessionCoordinator(transport=hub, resolver=never, hostname_lookup=True)
        websocket = FakeWebSocket()
        session = await coordinator.connect(websocket, "10.0.0.1", "10.0.0.1")
        await anyio.sleep(0)

        await coordinator.disconnect(session)
        await anyio.sleep(0.01)

        assert coordinator._lookups == {}
        assert "host_info" not in websocket.names()

    async def test_duplicate_identity_is_rejected(self, coordinator, connect) -> None:
        first, first_ws = await connect("10.0.0.1")
        second, second_ws = await connect("10.0.0.1")

        assert second is None
        assert second_ws.names() == ["connection_rejected"]
        assert second_ws.last("connection_rejected") == {"message": "Ya estás conectado desde otro navegador."}
        assert second_ws.close_code == POLICY_VIOLATION_CLOSE_CODE

        await coordinator.dispatch(first, "get_rooms", {})
        assert first_ws.names().count("available_rooms") == 2
        assert await coordinator.connections.session_for("10.0.0.1") == first.session_id

    async def test_identity_is_free_after_disconnect(self, coordinator, connect) -> None:
        first, _ = await connect("10.0.0.1")
        await coordinator.disconnect(first)

        second, websocket = await connect("10.0.0.1")

        assert second is not None
        assert "connection_rejected" not in websocket.names()


class TestRooms:
    async def test_create_room_defaults_and_listing(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        bob, bob_ws = await connect("10.0.0.2")

        code = await create_room(coordinator, alice, alice_ws)
        await coordinator.dispatch(bob, "get_rooms", {})

        assert bob_ws.events("room_list_updated") == [{}]
        assert alice_ws.events("room_list_updated") == [{}]
        assert bob_ws.last("available_rooms") == [{"code": code, "name": "Lobby", "userCount": 0, "maxUsers": 10}]

    async def test_invalid_create_is_reported_to_caller(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")

        await coordinator.dispatch(alice, "create_room", {"roomName": "Lobby", "maxUsers": -3})

        assert alice_ws.last("create_room_error") == {"message": ERROR_MESSAGES["invalid_max_users"]}
        assert await coordinator.rooms.list_open() == []

    async def test_large_capacity_is_accepted(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")

        code = await create_room(coordinator, alice, alice_ws, name="Big", max_users=150)

        assert alice_ws.events("create_room_error") == []
        assert await coordinator.rooms.list_open() == [{"code": code, "name": "Big", "userCount": 0, "maxUsers": 150}]

    async def test_two_users_join(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        bob, bob_ws = await connect("10.0.0.2")
        code = await create_room(coordinator, alice, alice_ws)

        await join(coordinator, alice, code, "alice")
        await join(coordinator, bob, code, "bob")

        bob_joined = {"user": {"username": "bob", "id": bob.session_id}, "userCount": 2}
        assert alice_ws.last("user_joined") == bob_joined
        assert bob_ws.last("user_joined") == bob_joined
        history = bob_ws.last("room_history")
        assert history["messages"] == []
        assert len(history["users"]) == 2
        assert bob.room_code == code
        assert bob.username == "bob"

    async def test_user_joined_precedes_history(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        code = await create_room(coordinator, alice, alice_ws)
        alice_ws.clear()

        await join(coordinator, alice, code, "alice")

        assert alice_ws.names() == ["user_joined", "room_history"]

    async def test_full_room(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        bob, bob_ws = await connect("10.0.0.2")
        code = await create_room(coordinator, alice, alice_ws, max_users=1)
        await join(coordinator, alice, code, "alice")
        alice_ws.clear()

        await join(coordinator, bob, code, "bob")

        assert bob_ws.last("join_room_error") == {"message": "La sala está llena."}
        assert bob.room_code is None
        assert alice_ws.names() == []
        room = await coordinator.rooms.get_room(code)
        assert list(room.members) == [alice.session_id]

    async def test_unknown_room(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")

        await join(coordinator, alice, "ABCDEF", "alice")

        assert alice_ws.last("join_room_error") == {"message": "La sala no existe."}
        assert alice.room_code is None

    async def test_codes_match_case_insensitively(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        code = await create_room(coordinator, alice, alice_ws)

        await join(coordinator, alice, code.lower(), "alice")

        assert alice.room_code == code

    async def test_moving_rooms_leaves_old_room(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        bob, bob_ws = await connect("10.0.0.2")
        first = await create_room(coordinator, alice, alice_ws, name="first")
        second = await create_room(coordinator, alice, alice_ws, name="second")
        await join(coordinator, alice, first, "alice")
        await join(coordinator, bob, first, "bob")
        alice_ws.clear()

        await join(coordinator, bob, second, "bob")

        assert alice_ws.last("user_left") == {"userId": bob.session_id, "username": "bob", "userCount": 1}
        assert bob.room_code == second
        first_room = await coordinator.rooms.get_room(first)
        assert list(first_room.members) == [alice.session_id]


class TestMessages:
    async def test_message_reaches_every_member(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        bob, bob_ws = await connect("10.0.0.2")
        carol, carol_ws = await connect("10.0.0.3")
        code = await create_room(coordinator, alice, alice_ws)
        await join(coordinator, alice, code, "alice")
        await join(coordinator, bob, code, "bob")

        await coordinator.dispatch(alice, "send_message", {"text": "hola"})

        for websocket in (alice_ws, bob_ws):
            message = websocket.last("receive_message")
            assert (message["text"], message["username"]) == ("hola", "alice")
            assert message["timestamp"].endswith("Z")
        assert carol_ws.events("receive_message") == []

        await join(coordinator, carol, code, "carol")
        assert [m["text"] for m in carol_ws.last("room_history")["messages"]] == ["hola"]

    async def test_send_outside_room(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")

        await coordinator.dispatch(alice, "send_message", {"text": "hola"})

        assert alice_ws.last("message_error") == {"message": "No estás en una sala válida."}

    async def test_invalid_text(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        code = await create_room(coordinator, alice, alice_ws)
        await join(coordinator, alice, code, "alice")

        await coordinator.dispatch(alice, "send_message", {"text": 42})

        assert alice_ws.last("message_error") == {"message": ERROR_MESSAGES["invalid_message"]}
        assert alice_ws.events("receive_message") == []

    async def test_whitespace_text_round_trips(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        bob, bob_ws = await connect("10.0.0.2")
        code = await create_room(coordinator, alice, alice_ws)
        await join(coordinator, alice, code, "alice")
        await join(coordinator, bob, code, "bob")

        await coordinator.dispatch(alice, "send_message", {"text": "   "})

        assert alice_ws.events("message_error") == []
        for websocket in (alice_ws, bob_ws):
            assert websocket.last("receive_message")["text"] == "   "

    async def test_history_keeps_latest_messages(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        bob, bob_ws = await connect("10.0.0.2")
        code = await create_room(coordinator, alice, alice_ws)
        await join(coordinator, alice, code, "alice")

        for n in range(MAX_HISTORY_MESSAGES + 5):
            await coordinator.dispatch(alice, "send_message", {"text": str(n)})
        await join(coordinator, bob, code, "bob")

        texts = [m["text"] for m in bob_ws.last("room_history")["messages"]]
        assert texts == [str(n) for n in range(5, MAX_HISTORY_MESSAGES + 5)]


class TestLeaving:
    async def test_leave_notifies_remaining_members(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        bob, bob_ws = await connect("10.0.0.2")
        code = await create_room(coordinator, alice, alice_ws)
        await join(coordinator, alice, code, "alice")
        await join(coordinator, bob, code, "bob")
        bob_ws.clear()

        await coordinator.dispatch(bob, "leave_room", {})

        assert alice_ws.last("user_left") == {"userId": bob.session_id, "username": "bob", "userCount": 1}
        assert bob_ws.events("user_left") == []
        assert bob.room_code is None
        assert bob.username is None

    async def test_last_leave_deletes_room(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        bob, bob_ws = await connect("10.0.0.2")
        code = await create_room(coordinator, alice, alice_ws)
        await join(coordinator, alice, code, "alice")
        bob_ws.clear()

        await coordinator.dispatch(alice, "leave_room", {})

        assert bob_ws.events("room_list_updated") == [{}]
        assert await coordinator.rooms.get_room(code) is None

    async def test_leave_without_room_is_silent(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        alice_ws.clear()

        await coordinator.dispatch(alice, "leave_room", {})

        assert alice_ws.names() == []

    async def test_sole_member_disconnect_deletes_room(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        bob, bob_ws = await connect("10.0.0.2")
        code = await create_room(coordinator, alice, alice_ws)
        await join(coordinator, alice, code, "alice")
        bob_ws.clear()

        await coordinator.disconnect(alice)

        assert bob_ws.events("room_list_updated") == [{}]
        await coordinator.dispatch(bob, "get_rooms", {})
        assert bob_ws.last("available_rooms") == []
        assert await coordinator.connections.session_for("10.0.0.1") is None

    async def test_disconnect_notifies_room(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        bob, bob_ws = await connect("10.0.0.2")
        code = await create_room(coordinator, alice, alice_ws)
        await join(coordinator, alice, code, "alice")
        await join(coordinator, bob, code, "bob")

        await coordinator.disconnect(bob)

        assert alice_ws.last("user_left") == {"userId": bob.session_id, "username": "bob", "userCount": 1}

    async def test_no_events_after_disconnect(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        await coordinator.disconnect(alice)
        alice_ws.clear()

        await coordinator.dispatch(alice, "create_room", {"roomName": "Ghost"})
        await coordinator.disconnect(alice)

        assert alice_ws.names() == []
        assert await coordinator.rooms.list_open() == []


class TestFrames:
    async def test_malformed_frame_reports_error(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")

        await coordinator.handle_frame(alice, "{nope")

        assert alice_ws.last("error") == {"message": ERROR_MESSAGES["invalid_json"]}

    async def test_frame_dispatches_event(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")

        await coordinator.handle_frame(alice, '{"event": "create_room", "data": {"roomName": "Lobby"}}')

        assert "room_created" in alice_ws.names()

    async def test_stats(self, coordinator, connect) -> None:
        alice, alice_ws = await connect("10.0.0.1")
        code = await create_room(coordinator, alice, alice_ws)
        await join(coordinator, alice, code, "alice")

        stats = await coordinator.get_stats()

        assert stats["connected_sessions"] == 1
        assert stats["attached_sockets"] == 1
        assert stats["total_rooms"] == 1
        assert stats["total_members"] == 1
