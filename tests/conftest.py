from __future__ import annotations

import asyncio
import json
from typing import List, Optional, Tuple

import pytest

from chatsync.services.chat_client import ChatClient
from chatsync.services.identity import SessionIdentity
from chatsync.services.store import MemoryStore
from chatsync.services.transport import TransportConnector

LOCAL_SESSION = "user_localtest"


class FakeClock:
    """Epoch-ms clock that ticks by one on every read."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


class FakeTransport(TransportConnector):
    """In-memory transport: frames pushed with ``push`` arrive as inbound."""

    name = "fake"

    def __init__(self, fail_connect: bool = False):
        super().__init__()
        self.fail_connect = fail_connect
        self.connects = 0
        self.disconnects = 0
        self.actions: List[Tuple[str, str]] = []
        self.transmitted: List[Tuple[str, dict]] = []
        self.incoming: Optional[asyncio.Queue] = None

    async def _connect(self) -> None:
        if self.fail_connect:
            raise ConnectionRefusedError("relay down")
        self.connects += 1
        self.incoming = asyncio.Queue()

    async def _disconnect(self) -> None:
        self.disconnects += 1

    async def _subscribe(self, room_id: str) -> None:
        self.actions.append(("join", room_id))

    async def _unsubscribe(self, room_id: str) -> None:
        self.actions.append(("leave", room_id))

    async def _transmit(self, room_id: str, frame: str) -> None:
        self.transmitted.append((room_id, json.loads(frame)))

    async def _frames(self):
        while True:
            raw = await self.incoming.get()
            if raw is None:
                return
            yield raw

    def push(self, raw) -> None:
        if isinstance(raw, dict):
            raw = json.dumps(raw)
        self.incoming.put_nowait(raw)

    def hang_up(self) -> None:
        self.incoming.put_nowait(None)


async def settle(rounds: int = 10) -> None:
    """Let reader/writer tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def client(store: MemoryStore, transport: FakeTransport, clock: FakeClock) -> ChatClient:
    chat = ChatClient(store, transport, identity=SessionIdentity(LOCAL_SESSION), clock=clock)
    chat.bootstrap()
    return chat
