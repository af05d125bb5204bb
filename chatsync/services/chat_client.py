# chatsync/services/chat_client.py

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from chatsync.core.errors import StaleWriteError
from chatsync.models import Message, Room, WireEvent
from chatsync.services.identity import SessionIdentity, now_ms
from chatsync.services.message_log import MessageLog
from chatsync.services.preferences import Preferences
from chatsync.services.reconciler import Reconciler
from chatsync.services.room_directory import RoomDirectory
from chatsync.services.store import JsonFileStore, MemoryStore, PersistentStore
from chatsync.services.transport import ConnectionState, TransportConnector
from chatsync.services.view_projector import ViewProjector

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]


def build_store(settings) -> PersistentStore:
    if settings.CHAT_STORE == "memory":
        return MemoryStore(write_retries=settings.STORE_WRITE_RETRIES)
    if settings.CHAT_STORE == "redis":
        from chatsync.services.redis_store import RedisStore
        return RedisStore.from_url(
            settings.REDIS_URL,
            prefix=settings.REDIS_KEY_PREFIX,
            write_retries=settings.STORE_WRITE_RETRIES,
        )
    return JsonFileStore(settings.CHAT_STORE_DIR, write_retries=settings.STORE_WRITE_RETRIES)


def build_transport(settings) -> TransportConnector:
    if settings.CHAT_TRANSPORT == "redis":
        from chatsync.services.redis_transport import RedisTransport
        return RedisTransport(settings.REDIS_URL)
    from chatsync.services.ws_transport import WebSocketTransport
    return WebSocketTransport(settings.CHAT_WS_URL)


# ============================================================================
# CHAT CLIENT
# ============================================================================

class ChatClient:
    """
    One running chat client: store, log, directory, transport and reconciler
    wired together, plus the surface the rendering layer talks to.

    Read side:
        rooms, messages, active_room_id, connection_state, user_name,
        dark_mode, snapshot()

    Actions:
        select_room(id), create_room(name), send_message(text),
        set_user_name(name), toggle_dark_mode()

    Listeners registered with ``add_listener`` are called with a short
    reason string ("rooms", "messages", "view", "connection",
    "preferences") after every change.

    Usage:
        client = ChatClient(JsonFileStore("~/.chatsync"),
                            WebSocketTransport("ws://localhost:8080/chat"))
        client.bootstrap()
        await client.start()
        client.send_message("hello")
    """

    def __init__(
        self,
        store: PersistentStore,
        transport: TransportConnector,
        identity: Optional[SessionIdentity] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.transport = transport
        self.identity = identity or SessionIdentity()
        self._clock = clock

        self.log = MessageLog(store)
        self.directory = RoomDirectory(store)
        self.preferences = Preferences(store)
        self.projector = ViewProjector(self.log)
        self.reconciler = Reconciler(
            identity=self.identity,
            store=store,
            log=self.log,
            directory=self.directory,
            projector=self.projector,
            transport=transport,
            preferences=self.preferences,
            clock=clock,
        )

        self._listeners: List[ChangeListener] = []
        transport.add_inbound_handler(self._on_inbound)
        transport.add_state_listener(lambda state: self._notify("connection"))

    @classmethod
    def from_settings(cls, settings) -> "ChatClient":
        return cls(build_store(settings), build_transport(settings))

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _notify(self, reason: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(reason)
            except Exception as e:
                logger.error(f"Error in change listener: {e}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def bootstrap(self) -> None:
        """Seed default rooms on first run and restore the active room."""
        self.directory.bootstrap(self._clock())
        self.reconciler.restore_active_room()
        logger.info(f"Session {self.identity} ready in room {self.active_room_id}")

    async def start(self) -> bool:
        return await self.transport.open(self.active_room_id)

    async def stop(self) -> None:
        await self.transport.close()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def rooms(self) -> List[Room]:
        return self.directory.list()

    @property
    def messages(self) -> List[Message]:
        return list(self.projector.messages)

    @property
    def active_room_id(self) -> str:
        return self.reconciler.active_room_id

    @property
    def connection_state(self) -> ConnectionState:
        return self.transport.state

    @property
    def user_name(self) -> str:
        return self.preferences.user_name

    @property
    def dark_mode(self) -> bool:
        return self.preferences.dark_mode

    def snapshot(self) -> dict:
        return {
            "rooms": [room.to_record() for room in self.rooms],
            "messages": [message.to_record() for message in self.projector.messages],
            "activeRoomId": self.active_room_id,
            "connectionState": self.connection_state.value,
            "userName": self.user_name,
            "darkMode": self.dark_mode,
        }

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def select_room(self, room_id: str) -> List[Message]:
        messages = self.reconciler.select_room(room_id)
        self._notify("view")
        await self.transport.switch_room(room_id)
        return list(messages)

    async def create_room(self, name: str) -> Room:
        """
        Create a room and switch to it.

        Raises:
            ValueError: name is blank
        """
        room = self.directory.create(name, now=self._clock())
        self._notify("rooms")
        await self.select_room(room.id)
        return room

    def send_message(self, text: str) -> Optional[Message]:
        try:
            message = self.reconciler.send_message(text)
        except StaleWriteError as e:
            logger.error(f"Send dropped: {e}")
            return None
        if message is not None:
            self._notify("messages")
        return message

    def set_user_name(self, name: str) -> bool:
        changed = self.preferences.set_user_name(name)
        if changed:
            self._notify("preferences")
        return changed

    def set_dark_mode(self, enabled: bool) -> None:
        self.preferences.set_dark_mode(enabled)
        self._notify("preferences")

    def toggle_dark_mode(self) -> bool:
        enabled = self.preferences.toggle_dark_mode()
        self._notify("preferences")
        return enabled

    def _on_inbound(self, event: WireEvent) -> None:
        try:
            message = self.reconciler.handle_inbound(event)
        except StaleWriteError as e:
            logger.error(f"Inbound {event.id} dropped: {e}")
            return
        if message is not None:
            self._notify("messages")
