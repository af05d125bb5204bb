# chatsync/core/errors.py
"""
Error taxonomy for the sync engine.

None of these are fatal. Each one is raised at the point where the problem
is detected and caught one level up, where the offending event is dropped
and logged.
"""

from __future__ import annotations


class ChatSyncError(Exception):
    """Base class for all chatsync errors."""


class MalformedInboundPayload(ChatSyncError):
    """An inbound frame could not be parsed into a wire event."""

    def __init__(self, reason: str, raw: object = None):
        self.reason = reason
        self.raw = raw
        super().__init__(f"Malformed inbound payload: {reason}")


class TransportUnavailable(ChatSyncError):
    """A send was attempted while the transport was not open."""

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"Transport unavailable (state={state})")


class DuplicateMessageId(ChatSyncError):
    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(f"Message {message_id} already in log")


class UnknownRoomReference(ChatSyncError):
    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not in directory")


class StaleWriteError(ChatSyncError):
    """A versioned write kept losing to concurrent writers."""

    def __init__(self, key: str, attempts: int):
        self.key = key
        self.attempts = attempts
        super().__init__(f"Gave up writing '{key}' after {attempts} stale attempts")
