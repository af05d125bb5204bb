from .chat_client import ChatClient, build_store, build_transport
from .identity import SessionIdentity
from .message_log import MessageLog
from .preferences import Preferences
from .reconciler import Reconciler
from .room_directory import RoomDirectory
from .store import JsonFileStore, MemoryStore, PersistentStore
from .transport import ConnectionState, TransportConnector
from .view_projector import ViewProjector

__all__ = [
    'ChatClient',
    'ConnectionState',
    'JsonFileStore',
    'MemoryStore',
    'MessageLog',
    'PersistentStore',
    'Preferences',
    'Reconciler',
    'RoomDirectory',
    'SessionIdentity',
    'TransportConnector',
    'ViewProjector',
    'build_store',
    'build_transport',
]
