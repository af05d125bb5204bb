# chatsync/services/ws_transport.py

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Optional

import websockets

from chatsync.services.transport import TransportConnector

logger = logging.getLogger(__name__)


class WebSocketTransport(TransportConnector):
    """
    Transport over a single WebSocket to the relay.

    Protocol (client -> relay):
        Chat event:
            {"id": "...", "text": "...", "senderId": "...", "senderName": "...",
             "timestamp": 1733000000000, "roomId": "1"}

        Join Room:
            {"action": "join", "room_id": "1"}

        Leave Room:
            {"action": "leave", "room_id": "1"}

    Relays that don't know the join/leave actions just pass them around as
    opaque frames; other clients drop them as malformed (no id/text).
    """

    name = "websocket"

    def __init__(self, url: str, open_timeout: float = 10.0):
        super().__init__()
        self.url = url
        self.open_timeout = open_timeout
        self._ws = None

    async def _connect(self) -> None:
        self._ws = await websockets.connect(self.url, open_timeout=self.open_timeout)
        logger.info(f"✓ Connected to {self.url}")

    async def _disconnect(self) -> None:
        ws: Optional[object] = self._ws
        self._ws = None
        if ws is not None:
            await ws.close()

    async def _subscribe(self, room_id: str) -> None:
        await self._ws.send(json.dumps({"action": "join", "room_id": room_id}))

    async def _unsubscribe(self, room_id: str) -> None:
        await self._ws.send(json.dumps({"action": "leave", "room_id": room_id}))

    async def _transmit(self, room_id: str, frame: str) -> None:
        await self._ws.send(frame)

    async def _frames(self) -> AsyncIterator[object]:
        ws = self._ws
        # Ends quietly on a clean close, raises ConnectionClosedError otherwise
        async for raw in ws:
            yield raw
