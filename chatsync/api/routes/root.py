# chatsync/api/routes/root.py

from fastapi import APIRouter

from chatsync import __version__
from chatsync.api.utils import require_client

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the API and its endpoints.
    """
    return {
        "message": "chatsync - local chat sync engine",
        "version": __version__,
        "endpoints": {
            "websocket": "/ws",
            "state": "/state",
            "rooms": "/rooms",
            "messages": "/messages",
            "preferences": "/preferences",
            "health": "/health",
            "metrics": "/metrics",
        },
    }


@router.get("/state")
async def get_state():
    """Everything the rendering layer needs in one payload."""
    return require_client().snapshot()
