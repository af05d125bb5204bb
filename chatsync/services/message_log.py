# chatsync/services/message_log.py

from __future__ import annotations

import logging
from typing import Iterator, List, Optional

from pydantic import ValidationError

from chatsync.core.errors import DuplicateMessageId
from chatsync.models import Message
from chatsync.services.store import MESSAGES_KEY, PersistentStore

logger = logging.getLogger(__name__)

# ============================================================================
# MESSAGE LOG
# ============================================================================

class RoomQuery:
    """
    The messages of one room, in global insertion order.

    Lazy and restartable: nothing is read until iteration starts, and each
    new iteration re-reads the log, so it reflects appends made since the
    query was created.
    """

    def __init__(self, log: "MessageLog", room_id: str):
        self._log = log
        self.room_id = room_id

    def __iter__(self) -> Iterator[Message]:
        for message in self._log.all():
            if message.room_id == self.room_id:
                yield message

    def __repr__(self) -> str:
        return f"RoomQuery(room_id={self.room_id!r})"


class MessageLog:
    """
    Append-only log of every accepted message, persisted as one flat list.

    Message ids are unique across the whole log (not per room). Rooms are
    not partitioned in storage; ``query(room_id)`` filters on read.

    Storage Format (key "messages"):
        [
            {"id": "1733000000000-k3j2h1g0f", "text": "hi", "sender": "self",
             "senderDisplayName": "Alice", "timestamp": 1733000000000, "roomId": "1"},
            ...
        ]
    """

    def __init__(self, store: PersistentStore):
        self._store = store

    def all(self) -> List[Message]:
        """Every stored message in insertion order. Unreadable records are skipped."""
        records = self._store.get(MESSAGES_KEY) or []
        messages: List[Message] = []
        for record in records:
            try:
                messages.append(Message.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable message record: {e}")
        return messages

    def __len__(self) -> int:
        # Same count that all() and query() see
        return len(self.all())

    def contains(self, message_id: str) -> bool:
        return any(isinstance(record, dict) and record.get("id") == message_id
                   for record in self._store.get(MESSAGES_KEY) or [])

    def get(self, message_id: str) -> Optional[Message]:
        for message in self.all():
            if message.id == message_id:
                return message
        return None

    def insert(self, message: Message) -> None:
        """
        Add a message at the end of the log.

        Raises:
            DuplicateMessageId: the id is already present
        """
        def _append(records):
            records = records or []
            if any(isinstance(record, dict) and record.get("id") == message.id
                   for record in records):
                raise DuplicateMessageId(message.id)
            records.append(message.to_record())
            return records

        self._store.update(MESSAGES_KEY, _append)

    def append(self, message: Message) -> bool:
        """
        Idempotent insert.

        Returns:
            True if the message was stored, False if its id was already there
        """
        try:
            self.insert(message)
        except DuplicateMessageId as e:
            logger.debug(str(e))
            return False
        return True

    def query(self, room_id: str) -> RoomQuery:
        return RoomQuery(self, room_id)
