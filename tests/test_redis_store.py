import json
from unittest.mock import MagicMock

from redis.exceptions import WatchError

from chatsync.services.redis_store import RedisStore


def _store_with_pipeline():
    client = MagicMock()
    pipe = MagicMock()
    client.pipeline.return_value.__enter__.return_value = pipe
    return RedisStore(client, prefix="test:"), client, pipe


def test_read_decodes_value_and_version() -> None:
    store, client, _ = _store_with_pipeline()
    client.hmget.return_value = ['[{"id": "1"}]', "4"]

    assert store.read("rooms") == ([{"id": "1"}], 4)
    client.hmget.assert_called_once_with("test:rooms", ["value", "version"])


def test_read_missing_key() -> None:
    store, client, _ = _store_with_pipeline()
    client.hmget.return_value = [None, None]

    assert store.read("rooms") == (None, 0)


def test_compare_and_set_writes_next_version() -> None:
    store, _, pipe = _store_with_pipeline()
    pipe.hget.return_value = "3"

    assert store.compare_and_set("messages", ["m"], 3) is True

    pipe.watch.assert_called_once_with("test:messages")
    pipe.multi.assert_called_once()
    pipe.hset.assert_called_once_with(
        "test:messages", mapping={"value": json.dumps(["m"]), "version": 4}
    )
    pipe.execute.assert_called_once()


def test_compare_and_set_rejects_stale_version() -> None:
    store, _, pipe = _store_with_pipeline()
    pipe.hget.return_value = "5"

    assert store.compare_and_set("messages", ["m"], 3) is False
    pipe.unwatch.assert_called_once()
    pipe.execute.assert_not_called()


def test_compare_and_set_loses_watch_race() -> None:
    store, _, pipe = _store_with_pipeline()
    pipe.hget.return_value = "3"
    pipe.execute.side_effect = WatchError()

    assert store.compare_and_set("messages", ["m"], 3) is False
