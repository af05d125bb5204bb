# chatsync/api/routes/health.py

from fastapi import APIRouter

from chatsync.api.utils import require_client
from chatsync.core import state

router = APIRouter()


@router.get("/health")
async def health():
    """
    Health check endpoint.

    Returns current status, transport connection state, and store counts.
    "degraded" means the client is up but not connected: sends still land
    locally, they just don't reach anyone else.

    Returns:
        dict: Status, connection state, room count, message count
    """
    client = require_client()
    connection = client.connection_state.value
    return {
        "status": "healthy" if client.transport.is_open else "degraded",
        "connection": connection,
        "active_room": client.active_room_id,
        "subscription": client.transport.subscription,
        "rooms": len(client.rooms),
        "messages": len(client.log),
        "renderer_sockets": len(state.renderer_sockets),
    }
