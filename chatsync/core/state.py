# chatsync/core/state.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Set

from fastapi import WebSocket

from chatsync.services.chat_client import ChatClient

# Global singletons for app state (installed on startup, or by tests)
client: Optional[ChatClient] = None

# Rendering-layer WebSockets that receive state pushes
renderer_sockets: Set[WebSocket] = set()

# Metrics
app_start_time: datetime = datetime.now(timezone.utc)
