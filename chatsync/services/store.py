# chatsync/services/store.py

from __future__ import annotations

import copy
import fcntl
import json
import logging
import os
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from chatsync.core.errors import StaleWriteError

logger = logging.getLogger(__name__)

# Well-known keys
ROOMS_KEY = "rooms"
MESSAGES_KEY = "messages"
ACTIVE_ROOM_KEY = "activeRoom"
DARK_MODE_KEY = "darkMode"
USER_NAME_KEY = "userName"

DEFAULT_WRITE_RETRIES = 5

# ============================================================================
# PERSISTENT STORE
# ============================================================================

class PersistentStore:
    """
    Durable key/value storage for whole-collection JSON blobs.

    Every key carries a version token that increases by one on each write.
    Writers that go through ``update()`` read the blob together with its
    version, mutate it, and only write back if the version is unchanged
    (compare-and-set). A writer that lost the race re-reads and re-applies
    its mutation instead of clobbering the other writer's update.

    Subclasses implement ``read``, ``compare_and_set`` and ``set``.

    Usage:
        store = JsonFileStore("~/.chatsync")
        store.set("activeRoom", "1")
        store.update("messages", lambda msgs: (msgs or []) + [record])
    """

    def __init__(self, write_retries: int = DEFAULT_WRITE_RETRIES):
        self.write_retries = max(1, write_retries)

    def get(self, key: str) -> Optional[Any]:
        value, _ = self.read(key)
        return value

    def read(self, key: str) -> Tuple[Optional[Any], int]:
        """Return ``(blob, version)``; a missing key is ``(None, 0)``."""
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        """Unconditional write. Still bumps the version."""
        raise NotImplementedError

    def compare_and_set(self, key: str, value: Any, expected_version: int) -> bool:
        """Write only if the key is still at ``expected_version``."""
        raise NotImplementedError

    def update(self, key: str, mutate: Callable[[Optional[Any]], Optional[Any]]) -> Optional[Any]:
        """
        Optimistic read-modify-write of one key.

        Args:
            key: Store key to modify
            mutate: Receives the current blob (or None) and returns the new
                blob. Returning None means "no change" and skips the write.
                Exceptions raised by ``mutate`` propagate to the caller.

        Returns:
            The blob that was written, or the unchanged current blob.

        Raises:
            StaleWriteError: every attempt lost to a concurrent writer
        """
        for attempt in range(1, self.write_retries + 1):
            current, version = self.read(key)
            updated = mutate(copy.deepcopy(current))
            if updated is None:
                return current
            if self.compare_and_set(key, updated, version):
                return updated
            logger.info("Stale write on '%s' (version %d), retry %d/%d",
                        key, version, attempt, self.write_retries)
        raise StaleWriteError(key, self.write_retries)


class MemoryStore(PersistentStore):
    """In-process store. Blobs are copied in and out so callers can't alias them."""

    def __init__(self, write_retries: int = DEFAULT_WRITE_RETRIES):
        super().__init__(write_retries)
        self._data: Dict[str, Tuple[Any, int]] = {}

    def read(self, key: str) -> Tuple[Optional[Any], int]:
        value, version = self._data.get(key, (None, 0))
        return copy.deepcopy(value), version

    def set(self, key: str, value: Any) -> None:
        _, version = self._data.get(key, (None, 0))
        self._data[key] = (copy.deepcopy(value), version + 1)

    def compare_and_set(self, key: str, value: Any, expected_version: int) -> bool:
        _, version = self._data.get(key, (None, 0))
        if version != expected_version:
            return False
        self._data[key] = (copy.deepcopy(value), version + 1)
        return True


_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+$")


class JsonFileStore(PersistentStore):
    """
    One JSON document per key inside a directory.

    Storage Format (<dir>/messages.json):
        {
            "version": 12,
            "value": [ {...}, {...} ]
        }

    Documents are replaced atomically (tmp file + rename), so readers never
    see a half-written blob. Writes are serialized across processes with an
    exclusive lock on ``<dir>/.lock``; the version check happens inside the
    lock, which is what makes compare-and-set hold between separate clients
    sharing one directory.
    """

    def __init__(self, directory: str | Path, write_retries: int = DEFAULT_WRITE_RETRIES):
        super().__init__(write_retries)
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock_path = self.directory / ".lock"
        logger.info(f"✓ File store at {self.directory}")

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid store key: {key!r}")
        return self.directory / f"{key}.json"

    @contextmanager
    def _locked(self) -> Iterator[None]:
        fd = os.open(self._lock_path, os.O_RDWR | os.O_CREAT, 0o600)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    def read(self, key: str) -> Tuple[Optional[Any], int]:
        path = self._path(key)
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None, 0
        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"Corrupt store document {path}: {e}")
            return None, 0

        if not isinstance(document, dict):
            return None, 0
        try:
            version = int(document.get("version", 0))
        except (TypeError, ValueError):
            version = 0
        return document.get("value"), version

    def _write(self, key: str, value: Any, version: int) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        content = json.dumps({"version": version, "value": value}, indent=2)

        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)

    def set(self, key: str, value: Any) -> None:
        with self._locked():
            _, version = self.read(key)
            self._write(key, value, version + 1)

    def compare_and_set(self, key: str, value: Any, expected_version: int) -> bool:
        with self._locked():
            _, version = self.read(key)
            if version != expected_version:
                return False
            self._write(key, value, version + 1)
            return True
