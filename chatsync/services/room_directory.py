# chatsync/services/room_directory.py
from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import ValidationError

from chatsync.core.errors import UnknownRoomReference
from chatsync.models import Room
from chatsync.services.identity import new_room_id, now_ms
from chatsync.services.store import ROOMS_KEY, PersistentStore

logger = logging.getLogger(__name__)

DEFAULT_ROOMS = [
    {"id": "1", "name": "General"},
    {"id": "2", "name": "Support"},
]

# ============================================================================
# ROOM DIRECTORY
# ============================================================================

class RoomDirectory:
    """
    Room summaries (name, last message preview, recency) persisted under "rooms".

    Rooms are never deleted. After creation the only mutation is ``touch``,
    applied by the reconciler whenever it accepts a message.

    Storage Format (key "rooms"):
        [
            {"id": "1", "name": "General", "lastMessagePreview": "hi",
             "lastUpdated": 1733000000000},
            ...
        ]

    Usage:
        directory = RoomDirectory(store)
        directory.bootstrap()
        room = directory.create("Product Team")
        for room in directory.list():
            ...
    """

    def __init__(self, store: PersistentStore):
        self._store = store

    def _load(self) -> List[Room]:
        rooms: List[Room] = []
        for record in self._store.get(ROOMS_KEY) or []:
            try:
                rooms.append(Room.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable room record: {e}")
        return rooms

    def bootstrap(self, now: Optional[int] = None) -> bool:
        """
        Create the default rooms on first run.

        Only an absent "rooms" key counts as first run; an existing empty
        list is left alone.

        Returns:
            True if the defaults were written
        """
        timestamp = now if now is not None else now_ms()
        defaults = [
            Room(id=rd["id"], name=rd["name"], last_updated=timestamp).to_record()
            for rd in DEFAULT_ROOMS
        ]

        def _seed(records):
            if records is not None:
                return None
            return defaults

        written = self._store.update(ROOMS_KEY, _seed)
        created = written is defaults
        if created:
            logger.info(f"✓ Created {len(defaults)} default rooms")
        return created

    def list(self) -> List[Room]:
        """All rooms, most recently updated first. Ties keep stored order."""
        return sorted(self._load(), key=lambda room: room.last_updated, reverse=True)

    def get(self, room_id: str) -> Optional[Room]:
        for room in self._load():
            if room.id == room_id:
                return room
        return None

    def require(self, room_id: str) -> Room:
        room = self.get(room_id)
        if room is None:
            raise UnknownRoomReference(room_id)
        return room

    def create(self, name: str, now: Optional[int] = None) -> Room:
        """
        Create a new room and persist it.

        Args:
            name: Room name (surrounding whitespace is dropped)
            now: Creation time in epoch ms, defaults to the current time

        Returns:
            Room: The newly created room

        Raises:
            ValueError: name is blank

        Note:
            Names are not required to be unique; rooms are told apart by id.
        """
        name = name.strip()
        if not name:
            raise ValueError("Room name required")

        room = Room(
            id=new_room_id(),
            name=name,
            last_message_preview="",
            last_updated=now if now is not None else now_ms(),
        )

        def _add(records):
            records = records or []
            records.append(room.to_record())
            return records

        self._store.update(ROOMS_KEY, _add)
        logger.info(f"✓ Created room: {room.name} ({room.id})")
        return room

    def touch(self, room_id: str, preview: str, timestamp: int) -> bool:
        """
        Record a newly accepted message on its room summary.

        A room id with no directory entry is skipped: the message itself is
        still in the log, the directory simply has nothing to show for it.

        Returns:
            True if a room was updated
        """
        def _touch(records):
            records = records or []
            for record in records:
                if isinstance(record, dict) and record.get("id") == room_id:
                    record["lastMessagePreview"] = preview
                    record["lastUpdated"] = timestamp
                    return records
            raise UnknownRoomReference(room_id)

        try:
            self._store.update(ROOMS_KEY, _touch)
        except UnknownRoomReference as e:
            logger.info(f"{e}; directory left unchanged")
            return False
        return True
