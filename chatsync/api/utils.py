# chatsync/api/utils.py

from __future__ import annotations

import asyncio
import logging
from typing import Set

from fastapi import HTTPException

from chatsync.core import state
from chatsync.services.chat_client import ChatClient

logger = logging.getLogger(__name__)

# Strong references so in-flight broadcasts aren't garbage-collected
_pending_broadcasts: Set[asyncio.Task] = set()


def require_client() -> ChatClient:
    if state.client is None:
        raise HTTPException(status_code=503, detail="Chat client not started")
    return state.client


async def broadcast_state_update(reason: str = "update") -> None:
    """
    Push the current snapshot to every connected rendering-layer socket.

    Side Effects:
        Sends JSON message to all renderer WebSocket connections:
        {
            "type": "state",
            "reason": "messages",
            "rooms": [...], "messages": [...], "activeRoomId": "1", ...
        }
    """
    if state.client is None or not state.renderer_sockets:
        return

    payload = {"type": "state", "reason": reason, **state.client.snapshot()}
    for websocket in list(state.renderer_sockets):
        try:
            await websocket.send_json(payload)
        except Exception as e:
            # Connection is closing; the endpoint cleans it up
            logger.debug(f"Renderer push failed: {e}")
            state.renderer_sockets.discard(websocket)


def _broadcast_done(task: asyncio.Task) -> None:
    _pending_broadcasts.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.error(f"State broadcast failed: {task.exception()}")


def schedule_broadcast(reason: str) -> None:
    """ChatClient listener: fire a broadcast on the running loop, if there is one."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return
    task = loop.create_task(broadcast_state_update(reason))
    _pending_broadcasts.add(task)
    task.add_done_callback(_broadcast_done)
