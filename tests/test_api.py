import asyncio

import pytest
from fastapi.testclient import TestClient

from chatsync.api.utils import _pending_broadcasts, schedule_broadcast
from chatsync.core import state
from chatsync.main import app
from chatsync.services.chat_client import ChatClient
from chatsync.services.identity import SessionIdentity
from chatsync.services.store import MemoryStore

from conftest import LOCAL_SESSION, FakeClock, FakeTransport


def _install(transport: FakeTransport) -> ChatClient:
    chat = ChatClient(MemoryStore(), transport, identity=SessionIdentity(LOCAL_SESSION), clock=FakeClock())
    state.client = chat
    return chat


@pytest.fixture
def api(transport: FakeTransport):
    _install(transport)
    with TestClient(app) as c:
        yield c
    state.client = None
    state.renderer_sockets.clear()


def test_root_lists_endpoints(api: TestClient) -> None:
    response = api.get("/")

    assert response.status_code == 200
    assert response.json()["endpoints"]["websocket"] == "/ws"


def test_rooms_are_bootstrapped(api: TestClient) -> None:
    response = api.get("/rooms")

    assert response.status_code == 200
    rooms = response.json()
    assert sorted(r["name"] for r in rooms) == ["General", "Support"]
    assert set(rooms[0]) == {"id", "name", "lastMessagePreview", "lastUpdated"}


def test_create_room_and_fetch_it(api: TestClient) -> None:
    created = api.post("/rooms", json={"name": "Product Team"})

    assert created.status_code == 200
    room = created.json()
    assert room["name"] == "Product Team"

    assert api.get(f"/rooms/{room['id']}").json() == room
    assert api.get("/state").json()["activeRoomId"] == room["id"]


def test_create_room_blank_name_is_rejected(api: TestClient) -> None:
    response = api.post("/rooms", json={"name": "   "})

    assert response.status_code == 400


def test_unknown_room_is_404(api: TestClient) -> None:
    assert api.get("/rooms/ghost").status_code == 404


def test_send_and_list_messages(api: TestClient, transport: FakeTransport) -> None:
    sent = api.post("/messages", json={"text": "hello"})

    assert sent.status_code == 200
    body = sent.json()
    assert body["text"] == "hello"
    assert body["sender"] == "self"
    assert body["roomId"] == "1"
    assert body["senderDisplayName"] == "Anonymous"

    listed = api.get("/messages").json()
    assert [m["id"] for m in listed] == [body["id"]]


def test_blank_message_is_rejected(api: TestClient) -> None:
    response = api.post("/messages", json={"text": "   "})

    assert response.status_code == 400
    assert response.json()["detail"] == "Message text required"


def test_select_room_returns_projected_view(api: TestClient, transport: FakeTransport) -> None:
    api.post("/messages", json={"text": "in general"})

    view = api.post("/rooms/2/select").json()

    assert view == []
    assert api.get("/state").json()["activeRoomId"] == "2"
    assert transport.subscription == 2


def test_preferences(api: TestClient) -> None:
    assert api.get("/preferences").json() == {"userName": "Anonymous", "darkMode": False}

    updated = api.put("/preferences", json={"userName": "Alice", "darkMode": True})
    assert updated.json() == {"userName": "Alice", "darkMode": True}

    assert api.put("/preferences", json={"userName": "  "}).status_code == 400

    sent = api.post("/messages", json={"text": "hi"}).json()
    assert sent["senderDisplayName"] == "Alice"


def test_health_when_connected(api: TestClient) -> None:
    body = api.get("/health").json()

    assert body["status"] == "healthy"
    assert body["connection"] == "open"
    assert body["active_room"] == "1"
    assert body["rooms"] == 2


def test_health_degraded_when_relay_unreachable() -> None:
    _install(FakeTransport(fail_connect=True))
    try:
        with TestClient(app) as c:
            body = c.get("/health").json()
            sent = c.post("/messages", json={"text": "offline"})
    finally:
        state.client = None

    assert body["status"] == "degraded"
    assert body["connection"] == "closed"
    assert sent.status_code == 200


def test_metrics_counts_outbound(api: TestClient) -> None:
    api.post("/messages", json={"text": "one"})

    body = api.get("/metrics").json()

    assert body["outbound"]["composed"] == 1
    assert body["inbound"]["accepted"] == 0
    assert body["connection"] == "open"


def test_no_client_is_503() -> None:
    state.client = None
    c = TestClient(app)

    assert c.get("/state").status_code == 503


def test_renderer_socket_gets_pushed_state(api: TestClient) -> None:
    with api.websocket_connect("/ws") as ws:
        initial = ws.receive_json()
        assert initial["type"] == "state"
        assert initial["reason"] == "connect"
        assert initial["activeRoomId"] == "1"

        ws.send_json({"action": "send_message", "text": "pushed"})
        update = ws.receive_json()
        assert update["reason"] == "messages"
        assert [m["text"] for m in update["messages"]] == ["pushed"]


def test_renderer_socket_errors(api: TestClient) -> None:
    with api.websocket_connect("/ws") as ws:
        ws.receive_json()

        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "message": "Invalid JSON"}

        ws.send_json({"action": "dance"})
        assert ws.receive_json()["message"] == "Unknown action: dance"

        ws.send_json({"action": "send_message", "text": ""})
        assert ws.receive_json()["message"] == "Message text required"

        ws.send_json({"action": "select_room"})
        assert ws.receive_json()["message"] == "room_id required"


def test_scheduled_broadcast_is_held_until_done() -> None:
    async def scenario():
        schedule_broadcast("messages")
        in_flight = len(_pending_broadcasts)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        return in_flight, len(_pending_broadcasts)

    state.client = None
    in_flight, after = asyncio.run(scenario())

    assert in_flight == 1
    assert after == 0
