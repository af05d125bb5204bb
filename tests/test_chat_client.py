import asyncio
from pathlib import Path

import pytest

from chatsync.core.errors import StaleWriteError
from chatsync.services.chat_client import ChatClient, build_store
from chatsync.services.identity import SessionIdentity
from chatsync.services.store import JsonFileStore, MemoryStore
from chatsync.services.transport import ConnectionState

from conftest import FakeClock, FakeTransport, settle


def test_start_subscribes_to_restored_room(client: ChatClient, transport: FakeTransport) -> None:
    async def scenario():
        ok = await client.start()
        state = client.connection_state
        await client.stop()
        return ok, state

    ok, state = asyncio.run(scenario())

    assert ok is True
    assert state == ConnectionState.OPEN
    assert transport.actions == [("join", "1")]
    assert client.connection_state == ConnectionState.CLOSED


def test_send_goes_out_and_is_shown(client: ChatClient, transport: FakeTransport) -> None:
    async def scenario():
        await client.start()
        message = client.send_message("hello")
        await settle()
        await client.stop()
        return message

    message = asyncio.run(scenario())

    room_id, frame = transport.transmitted[0]
    assert room_id == "1"
    assert frame["id"] == message.id
    assert frame["senderId"] == client.identity.session_id
    assert frame["senderName"] == "Anonymous"
    assert frame["roomId"] == "1"
    assert client.messages == [message]


def test_inbound_frames_reach_the_view(client: ChatClient, transport: FakeTransport) -> None:
    reasons = []
    client.add_listener(reasons.append)

    async def scenario():
        await client.start()
        transport.push({"id": "r1", "text": "from afar", "senderId": "user_other", "roomId": "1"})
        transport.push({"id": "r1", "text": "from afar", "senderId": "user_other", "roomId": "1"})
        await settle()
        await client.stop()

    asyncio.run(scenario())

    assert [m.id for m in client.messages] == ["r1"]
    assert reasons.count("messages") == 1
    assert "connection" in reasons


def test_select_room_switches_view_and_subscription(client: ChatClient, transport: FakeTransport) -> None:
    async def scenario():
        await client.start()
        transport.push({"id": "x", "text": "in two", "senderId": "user_other", "roomId": "2"})
        await settle()
        view = await client.select_room("2")
        await client.stop()
        return view

    view = asyncio.run(scenario())

    assert [m.id for m in view] == ["x"]
    assert client.active_room_id == "2"
    assert transport.actions == [("join", "1"), ("join", "2"), ("leave", "1")]
    assert transport.subscription == 2
    assert transport.connects == 1


def test_create_room_selects_it(client: ChatClient, transport: FakeTransport) -> None:
    reasons = []
    client.add_listener(reasons.append)

    async def scenario():
        created = await client.create_room("Product Team")
        await client.stop()
        return created

    room = asyncio.run(scenario())

    assert client.active_room_id == room.id
    assert client.rooms[0].id == room.id
    assert client.messages == []
    assert reasons[:2] == ["rooms", "view"]


def test_create_room_rejects_blank_name(client: ChatClient) -> None:
    with pytest.raises(ValueError):
        asyncio.run(client.create_room("  "))
    assert len(client.rooms) == 2


def test_preferences_round_trip(client: ChatClient) -> None:
    reasons = []
    client.add_listener(reasons.append)

    assert client.set_user_name("  Alice ") is True
    assert client.set_user_name("   ") is False
    assert client.toggle_dark_mode() is True
    assert client.toggle_dark_mode() is False

    snapshot = client.snapshot()
    assert snapshot["userName"] == "Alice"
    assert snapshot["darkMode"] is False
    assert reasons == ["preferences", "preferences", "preferences"]


def test_snapshot_shape(client: ChatClient) -> None:
    client.send_message("hi")

    snapshot = client.snapshot()

    assert set(snapshot) == {"rooms", "messages", "activeRoomId", "connectionState", "userName", "darkMode"}
    assert snapshot["activeRoomId"] == "1"
    assert snapshot["connectionState"] == "disconnected"
    assert snapshot["messages"][0]["text"] == "hi"
    assert snapshot["messages"][0]["sender"] == "self"
    assert snapshot["rooms"][0]["lastMessagePreview"] == "hi"


def test_failing_listener_does_not_break_actions(client: ChatClient) -> None:
    def broken(reason):
        raise RuntimeError("renderer gone")

    client.add_listener(broken)

    assert client.send_message("still works") is not None


def test_send_gives_up_quietly_when_store_keeps_losing(client: ChatClient, monkeypatch) -> None:
    def always_stale(key, mutate):
        raise StaleWriteError(key, 5)

    monkeypatch.setattr(client.store, "update", always_stale)

    assert client.send_message("lost") is None


def test_two_clients_sharing_a_directory_keep_both_messages(tmp_path: Path) -> None:
    clock = FakeClock()
    tab_a = ChatClient(JsonFileStore(tmp_path), FakeTransport(),
                       identity=SessionIdentity("user_a"), clock=clock)
    tab_b = ChatClient(JsonFileStore(tmp_path), FakeTransport(),
                       identity=SessionIdentity("user_b"), clock=clock)
    tab_a.bootstrap()
    tab_b.bootstrap()

    first = tab_a.send_message("from a")
    second = tab_b.send_message("from b")

    ids = [m.id for m in tab_a.log.all()]
    assert ids == [first.id, second.id]
    assert len(tab_b.rooms) == 2
    assert tab_a.directory.get("1").last_message_preview == "from b"


def test_state_survives_restart(tmp_path: Path) -> None:
    first = ChatClient(JsonFileStore(tmp_path), FakeTransport())
    first.bootstrap()

    async def session():
        await first.select_room("2")
        first.send_message("remember me")
        await first.stop()

    asyncio.run(session())
    first.set_user_name("Alice")

    second = ChatClient(JsonFileStore(tmp_path), FakeTransport())
    second.bootstrap()

    assert second.active_room_id == "2"
    assert [m.text for m in second.messages] == ["remember me"]
    assert second.user_name == "Alice"
    assert second.identity != first.identity


def test_build_store_memory() -> None:
    class _Settings:
        CHAT_STORE = "memory"
        STORE_WRITE_RETRIES = 3

    store = build_store(_Settings())

    assert isinstance(store, MemoryStore)
    assert store.write_retries == 3
