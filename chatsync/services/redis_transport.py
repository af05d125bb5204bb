# chatsync/services/redis_transport.py
from __future__ import annotations

import logging
from typing import AsyncIterator

import redis.asyncio as redis

from chatsync.services.transport import TransportConnector

logger = logging.getLogger(__name__)


class RedisTransport(TransportConnector):
    """
    Transport over Redis Pub/Sub, one channel per room.

    Channel naming:
        room:<room_id>

    The active room is the only subscribed channel. A room switch subscribes
    the new channel on the same connection and then drops the old one.
    Outbound frames are published to the channel of their roomId. Redis
    delivers our own publishes back to us; the reconciler drops those as
    self-echo.
    """

    name = "redis"

    def __init__(self, url: str, channel_prefix: str = "room:"):
        super().__init__()
        self.url = url
        self.channel_prefix = channel_prefix
        self.client = None
        self.pubsub = None

    def channel(self, room_id: str) -> str:
        return f"{self.channel_prefix}{room_id}"

    async def _connect(self) -> None:
        self.client = redis.from_url(self.url, decode_responses=True)
        await self.client.ping()
        self.pubsub = self.client.pubsub()
        logger.info("✓ Connected to Redis pub/sub")

    async def _disconnect(self) -> None:
        pubsub, client = self.pubsub, self.client
        self.pubsub = None
        self.client = None
        if pubsub is not None:
            await pubsub.aclose()
        if client is not None:
            await client.aclose()
        logger.info("Redis connection closed")

    async def _subscribe(self, room_id: str) -> None:
        await self.pubsub.subscribe(self.channel(room_id))
        logger.info(f"✓ Subscribed to Redis channel '{self.channel(room_id)}'")

    async def _unsubscribe(self, room_id: str) -> None:
        await self.pubsub.unsubscribe(self.channel(room_id))

    async def _transmit(self, room_id: str, frame: str) -> None:
        await self.client.publish(self.channel(room_id), frame)
        logger.debug(f"📤 Published to Redis channel '{self.channel(room_id)}'")

    async def _frames(self) -> AsyncIterator[object]:
        async for message in self.pubsub.listen():
            if message["type"] in ("message", "pmessage"):
                yield message["data"]
