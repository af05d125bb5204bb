# chatsync/services/view_projector.py

from __future__ import annotations

from typing import List, Optional

from chatsync.models import Message
from chatsync.services.message_log import MessageLog


class ViewProjector:
    """Holds the ordered messages of the room currently on screen."""

    def __init__(self, log: MessageLog):
        self._log = log
        self.room_id: Optional[str] = None
        self.messages: List[Message] = []

    def project(self, room_id: str) -> List[Message]:
        # Replaced wholesale; nothing carries over from the previous room
        self.room_id = room_id
        self.messages = list(self._log.query(room_id))
        return self.messages

    def extend(self, message: Message) -> bool:
        if message.room_id != self.room_id:
            return False
        self.messages.append(message)
        return True
