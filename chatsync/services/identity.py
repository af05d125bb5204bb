# chatsync/services/identity.py
"""Per-process session identity and id generation."""

from __future__ import annotations

import secrets
import string
import time
import uuid
from dataclasses import dataclass, field

_ALPHABET = string.digits + string.ascii_lowercase
TOKEN_LENGTH = 9


def now_ms() -> int:
    return int(time.time() * 1000)


def random_token(length: int = TOKEN_LENGTH) -> str:
    """Random lowercase base-36 token."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def new_message_id(timestamp: int) -> str:
    """
    Build a message id from the send time plus entropy.

    Uniqueness rests on the clock and the random suffix; there is no global
    counter behind it.
    """
    return f"{timestamp}-{random_token()}"


def new_room_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class SessionIdentity:
    """
    Identifier for this running instance.

    Tags outbound frames so the relay's echo of our own sends can be
    recognised and dropped. Lives only as long as the process: it is never
    written to the store and is not an account identifier.
    """

    session_id: str = field(default_factory=lambda: f"user_{random_token()}")

    def owns(self, sender_id: str | None) -> bool:
        return sender_id is not None and sender_id == self.session_id

    def __str__(self) -> str:
        return self.session_id
