# chatsync/services/redis_store.py
from __future__ import annotations

import json
import logging
from typing import Any, Optional, Tuple

import redis
from redis.exceptions import WatchError

from chatsync.services.store import DEFAULT_WRITE_RETRIES, PersistentStore

logger = logging.getLogger(__name__)


class RedisStore(PersistentStore):
    """
    Store backed by one Redis hash per key.

    Hash layout (``chatsync:messages``):
        value   -> JSON blob
        version -> integer, bumped on every write

    compare_and_set uses WATCH/MULTI so a write only lands if nobody else
    touched the hash since it was read. Lets several clients on different
    machines share one store without last-writer-wins losses.
    """

    def __init__(self, client: redis.Redis, prefix: str = "chatsync:",
                 write_retries: int = DEFAULT_WRITE_RETRIES):
        super().__init__(write_retries)
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "chatsync:",
                 write_retries: int = DEFAULT_WRITE_RETRIES) -> "RedisStore":
        client = redis.Redis.from_url(url, decode_responses=True)
        client.ping()
        logger.info("✓ Connected to Redis store")
        return cls(client, prefix=prefix, write_retries=write_retries)

    def _name(self, key: str) -> str:
        return f"{self.prefix}{key}"

    @staticmethod
    def _decode(raw_value: Optional[str], raw_version: Optional[str]) -> Tuple[Optional[Any], int]:
        version = int(raw_version) if raw_version is not None else 0
        if raw_value is None:
            return None, version
        try:
            return json.loads(raw_value), version
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt Redis blob: {e}")
            return None, version

    def read(self, key: str) -> Tuple[Optional[Any], int]:
        raw_value, raw_version = self.client.hmget(self._name(key), ["value", "version"])
        return self._decode(raw_value, raw_version)

    def set(self, key: str, value: Any) -> None:
        name = self._name(key)
        with self.client.pipeline() as pipe:
            pipe.hset(name, "value", json.dumps(value))
            pipe.hincrby(name, "version", 1)
            pipe.execute()

    def compare_and_set(self, key: str, value: Any, expected_version: int) -> bool:
        name = self._name(key)
        with self.client.pipeline() as pipe:
            try:
                pipe.watch(name)
                raw_version = pipe.hget(name, "version")
                current = int(raw_version) if raw_version is not None else 0
                if current != expected_version:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.hset(name, mapping={"value": json.dumps(value), "version": current + 1})
                pipe.execute()
                return True
            except WatchError:
                return False
