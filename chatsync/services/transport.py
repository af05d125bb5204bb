# chatsync/services/transport.py

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import AsyncIterator, Callable, List, Optional, Tuple

from pydantic import ValidationError

from chatsync.core.errors import MalformedInboundPayload, TransportUnavailable
from chatsync.models import WireEvent

logger = logging.getLogger(__name__)

InboundHandler = Callable[[WireEvent], None]
StateListener = Callable[["ConnectionState"], None]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


def parse_inbound(raw: object) -> WireEvent:
    """
    Turn a raw frame (text, bytes or an already-decoded dict) into a WireEvent.

    Raises:
        MalformedInboundPayload: not UTF-8, not JSON, not an object, or
            missing/invalid required fields (id, text)
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedInboundPayload("frame is not UTF-8", raw) from e

    payload = raw
    if isinstance(raw, str):
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedInboundPayload("invalid JSON", raw) from e

    if not isinstance(payload, dict):
        raise MalformedInboundPayload("expected a JSON object", raw)

    try:
        return WireEvent.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise MalformedInboundPayload(f"invalid field(s): {fields}", raw) from e


# ============================================================================
# TRANSPORT CONNECTOR
# ============================================================================

class TransportConnector:
    """
    Owns one live stream connection to the relay.

    State machine:
        DISCONNECTED -> CONNECTING -> OPEN -> CLOSING -> CLOSED
        CONNECTING -> CLOSED           (handshake failed)
        OPEN -> CLOSED                 (remote close / network failure)

    There is no automatic reconnect. Selecting a room while the connector is
    not OPEN starts a fresh connection; selecting a room while OPEN moves the
    per-room subscription over the existing connection. Either way every
    room switch increments ``subscription``.

    Outbound:
        ``send()`` only accepts frames while OPEN. Accepted frames go through
        a queue drained by a writer task so they hit the wire in order.
        Anything sent while not OPEN is dropped: not queued, not retried,
        and not raised to the caller.

    Inbound:
        Frames are parsed into WireEvents and handed to every registered
        handler. Frames that fail to parse are dropped and the connection
        stays up.

    Subclasses implement the I/O hooks: ``_connect``, ``_disconnect``,
    ``_subscribe``, ``_unsubscribe``, ``_transmit`` and ``_frames``.
    """

    name = "transport"

    def __init__(self) -> None:
        self.state = ConnectionState.DISCONNECTED
        self.room_id: Optional[str] = None
        self.subscription = 0

        self.sent_count = 0
        self.dropped_count = 0
        self.malformed_count = 0

        self._inbound_handlers: List[InboundHandler] = []
        self._state_listeners: List[StateListener] = []
        self._outbox: Optional[asyncio.Queue[Tuple[str, str]]] = None
        self._reader: Optional[asyncio.Task] = None
        self._writer: Optional[asyncio.Task] = None
        self._lifecycle = asyncio.Lock()

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def add_inbound_handler(self, handler: InboundHandler) -> None:
        self._inbound_handlers.append(handler)

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        logger.info("%s: %s → %s", self.name, self.state.value, state.value)
        self.state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Error in transport state listener: {e}")

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, room_id: str) -> bool:
        """
        Make sure we are connected and subscribed to ``room_id``.

        Returns:
            True if the connector ends up OPEN on that room. Connection
            failures are logged and leave the connector CLOSED.
        """
        async with self._lifecycle:
            if self.state == ConnectionState.OPEN:
                return await self._move_subscription(room_id)
            return await self._start(room_id)

    async def switch_room(self, room_id: str) -> bool:
        """Subscription boundary for a room switch. Same as ``open``."""
        return await self.open(room_id)

    async def close(self) -> None:
        async with self._lifecycle:
            if self.state in (ConnectionState.DISCONNECTED, ConnectionState.CLOSED) \
                    and self._reader is None:
                return
            await self._teardown()

    async def _start(self, room_id: str) -> bool:
        self._set_state(ConnectionState.CONNECTING)
        try:
            await self._connect()
            await self._subscribe(room_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"{self.name}: connect failed: {e}")
            await self._safe_disconnect()
            self._set_state(ConnectionState.CLOSED)
            return False

        self.room_id = room_id
        self.subscription += 1
        self._outbox = asyncio.Queue()
        self._set_state(ConnectionState.OPEN)
        self._reader = asyncio.create_task(self._read_loop())
        self._writer = asyncio.create_task(self._write_loop(self._outbox))
        logger.info(f"✓ {self.name}: subscribed to room {room_id}")
        return True

    async def _move_subscription(self, room_id: str) -> bool:
        previous = self.room_id
        if previous == room_id:
            return True

        try:
            # Subscribe first so the connection is never left with zero rooms
            await self._subscribe(room_id)
            if previous is not None:
                await self._unsubscribe(previous)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"{self.name}: room switch to {room_id} failed: {e}")
            await self._teardown()
            return False

        self.room_id = room_id
        self.subscription += 1
        logger.info("→ %s: room %s → %s (subscription %d)",
                    self.name, previous, room_id, self.subscription)
        return True

    async def _teardown(self) -> None:
        self._set_state(ConnectionState.CLOSING)
        self._outbox = None

        current = asyncio.current_task()
        tasks = [t for t in (self._reader, self._writer) if t is not None and t is not current]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._reader = None
        self._writer = None

        await self._safe_disconnect()
        self._set_state(ConnectionState.CLOSED)

    async def _safe_disconnect(self) -> None:
        try:
            await self._disconnect()
        except Exception as e:
            logger.debug(f"{self.name}: error while disconnecting: {e}")

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def send(self, event: WireEvent) -> bool:
        """
        Best-effort send.

        Returns:
            True if the frame was accepted for transmission, False if it was
            dropped because the connection is not OPEN
        """
        try:
            self._enqueue(event)
        except TransportUnavailable as e:
            self.dropped_count += 1
            logger.info(f"Outbound {event.id} dropped: {e}")
            return False
        return True

    def _enqueue(self, event: WireEvent) -> None:
        if self.state != ConnectionState.OPEN or self._outbox is None:
            raise TransportUnavailable(self.state.value)
        room_id = event.room_id or self.room_id or ""
        self._outbox.put_nowait((room_id, json.dumps(event.to_wire())))

    async def _write_loop(self, outbox: asyncio.Queue) -> None:
        while True:
            room_id, frame = await outbox.get()
            try:
                await self._transmit(room_id, frame)
                self.sent_count += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.dropped_count += 1
                logger.warning(f"{self.name}: send failed, frame dropped: {e}")

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def deliver(self, raw: object) -> Optional[WireEvent]:
        """Parse one raw frame and hand it to the inbound handlers."""
        try:
            event = parse_inbound(raw)
        except MalformedInboundPayload as e:
            self.malformed_count += 1
            logger.warning(f"{self.name}: {e}")
            return None

        for handler in list(self._inbound_handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in inbound handler: {e}")
        return event

    async def _read_loop(self) -> None:
        try:
            async for raw in self._frames():
                self.deliver(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"{self.name}: stream failed: {e}")

        if self.state == ConnectionState.OPEN:
            # Remote side went away; we did not ask for this close
            logger.info(f"✗ {self.name}: stream ended by remote")
            self._outbox = None
            self._set_state(ConnectionState.CLOSED)
            if self._writer is not None:
                self._writer.cancel()
                self._writer = None
            self._reader = None
            await self._safe_disconnect()

    # ------------------------------------------------------------------
    # I/O hooks
    # ------------------------------------------------------------------

    async def _connect(self) -> None:
        raise NotImplementedError

    async def _disconnect(self) -> None:
        raise NotImplementedError

    async def _subscribe(self, room_id: str) -> None:
        raise NotImplementedError

    async def _unsubscribe(self, room_id: str) -> None:
        raise NotImplementedError

    async def _transmit(self, room_id: str, frame: str) -> None:
        raise NotImplementedError

    def _frames(self) -> AsyncIterator[object]:
        raise NotImplementedError
