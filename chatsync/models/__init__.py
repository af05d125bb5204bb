from .models import (
    CreateRoomRequest,
    Message,
    PreferencesUpdate,
    Room,
    SendMessageRequest,
    Sender,
    WireEvent,
)

__all__ = [
    'CreateRoomRequest',
    'Message',
    'PreferencesUpdate',
    'Room',
    'SendMessageRequest',
    'Sender',
    'WireEvent',
]
