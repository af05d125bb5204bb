# chatsync/services/reconciler.py

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from chatsync.core.errors import StaleWriteError
from chatsync.models import Message, Sender, WireEvent
from chatsync.services.identity import SessionIdentity, new_message_id, now_ms
from chatsync.services.message_log import MessageLog
from chatsync.services.preferences import Preferences
from chatsync.services.room_directory import RoomDirectory
from chatsync.services.store import ACTIVE_ROOM_KEY, PersistentStore
from chatsync.services.transport import TransportConnector
from chatsync.services.view_projector import ViewProjector

logger = logging.getLogger(__name__)

DEFAULT_ACTIVE_ROOM = "1"

# ============================================================================
# RECONCILER
# ============================================================================

class Reconciler:
    """
    Merges inbound transport events and local sends into durable state.

    Inbound rules, in order:
        1. senderId == our session id      -> drop (relay echo of our send)
        2. roomId missing                  -> use the active room right now
        3. id already in the log           -> drop (duplicate delivery)
        4. otherwise                       -> append, touch the room, and
                                              extend the view if the room
                                              is on screen

    Outbound:
        The frame goes to the transport first, but whether the transport
        took it or dropped it never changes what happens locally: the
        message is always appended, the room touched, and the view extended.
        So a send made while offline shows up locally and nowhere else.

    Each call runs to completion (store writes included) before returning,
    which is what keeps events strictly ordered on the event loop.
    """

    def __init__(
        self,
        identity: SessionIdentity,
        store: PersistentStore,
        log: MessageLog,
        directory: RoomDirectory,
        projector: ViewProjector,
        transport: TransportConnector,
        preferences: Preferences,
        clock: Callable[[], int] = now_ms,
    ):
        self.identity = identity
        self._store = store
        self.log = log
        self.directory = directory
        self.projector = projector
        self.transport = transport
        self.preferences = preferences
        self._clock = clock

        self.active_room_id: str = DEFAULT_ACTIVE_ROOM

        # Metrics
        self.accepted_count = 0
        self.duplicate_count = 0
        self.self_echo_count = 0
        self.outbound_count = 0

    def restore_active_room(self) -> str:
        """Pick up the persisted active room (default "1") and project it."""
        saved = self._store.get(ACTIVE_ROOM_KEY)
        self.active_room_id = saved if isinstance(saved, str) and saved else DEFAULT_ACTIVE_ROOM
        self.projector.project(self.active_room_id)
        return self.active_room_id

    def select_room(self, room_id: str) -> List[Message]:
        """
        Make ``room_id`` the active room.

        The room does not have to be in the directory. The projected view is
        rebuilt from the log for the new room, replacing the old one.
        """
        self.active_room_id = room_id
        self._store.set(ACTIVE_ROOM_KEY, room_id)
        messages = self.projector.project(room_id)
        logger.info(f"Active room → {room_id} ({len(messages)} messages)")
        return messages

    def handle_inbound(self, event: WireEvent) -> Optional[Message]:
        """
        Apply one inbound event.

        Returns:
            The stored Message, or None if the event was an echo or duplicate
        """
        if self.identity.owns(event.sender_id):
            self.self_echo_count += 1
            logger.debug(f"Dropped self-echo {event.id}")
            return None

        room_id = event.room_id or self.active_room_id

        message = Message(
            id=event.id,
            text=event.text,
            sender=Sender.REMOTE,
            sender_display_name=event.sender_name or "Anonymous",
            timestamp=event.timestamp if event.timestamp is not None else self._clock(),
            room_id=room_id,
        )
        if not self.log.append(message):
            self.duplicate_count += 1
            return None

        self.accepted_count += 1
        self._touch_room(message)
        if room_id == self.active_room_id:
            self.projector.extend(message)
        logger.info(f"Inbound {message.id} from '{message.sender_display_name}' in room {room_id}")
        return message

    def send_message(self, text: str) -> Optional[Message]:
        """
        Compose a message in the active room.

        Args:
            text: Message body. Whitespace-only text is ignored; otherwise
                the text is kept exactly as typed.

        Returns:
            The locally stored Message, or None for blank text
        """
        if not text or not text.strip():
            return None

        timestamp = self._clock()
        room_id = self.active_room_id
        user_name = self.preferences.user_name
        event = WireEvent(
            id=new_message_id(timestamp),
            text=text,
            sender_id=self.identity.session_id,
            sender_name=user_name,
            timestamp=timestamp,
            room_id=room_id,
        )

        if not self.transport.send(event):
            logger.info(f"Message {event.id} kept locally only (transport {self.transport.state.value})")

        message = Message(
            id=event.id,
            text=text,
            sender=Sender.SELF,
            sender_display_name=user_name,
            timestamp=timestamp,
            room_id=room_id,
        )
        self.log.append(message)
        self.outbound_count += 1
        self._touch_room(message)
        self.projector.extend(message)
        return message

    def _touch_room(self, message: Message) -> None:
        # The message is already in the log; a lost directory write only
        # leaves the room summary behind
        try:
            self.directory.touch(message.room_id, message.text, message.timestamp)
        except StaleWriteError as e:
            logger.error(f"Room {message.room_id} summary not updated for {message.id}: {e}")
