# chatsync/api/websocket.py

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chatsync.core import state

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# RENDERER WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def renderer_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for the rendering layer.

    Protocol:
    =========

    Client -> Server Actions:
    -------------------------
    Get State:
        {"action": "get_state"}

    Select Room:
        {"action": "select_room", "room_id": "2"}

    Create Room:
        {"action": "create_room", "name": "Product Team"}

    Send Message:
        {"action": "send_message", "text": "Hello!"}

    Server -> Client Messages:
    -------------------------
    State Snapshot (on connect, on get_state, and after every change):
        {"type": "state", "reason": "messages", "rooms": [...], "messages": [...],
         "activeRoomId": "1", "connectionState": "open",
         "userName": "Alice", "darkMode": false}

    Error:
        {"type": "error", "message": "..."}

    Error Handling:
        - Invalid JSON: Sends error message
        - Unknown actions / blank input: Sends error message
        - Connection errors: Cleanup and log
    """
    await websocket.accept()
    client = state.client
    if client is None:
        await websocket.send_json({"type": "error", "message": "Chat client not started"})
        await websocket.close()
        return

    state.renderer_sockets.add(websocket)
    logger.info("✓ Renderer connected. Total: %d", len(state.renderer_sockets))
    await websocket.send_json({"type": "state", "reason": "connect", **client.snapshot()})

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
                action = message.get("action") if isinstance(message, dict) else None
                logger.debug(f"Renderer action: {action}")

                if action == "get_state":
                    await websocket.send_json({"type": "state", "reason": "get_state", **client.snapshot()})

                elif action == "select_room":
                    room_id = message.get("room_id")
                    if room_id:
                        await client.select_room(str(room_id))
                    else:
                        await websocket.send_json({"type": "error", "message": "room_id required"})

                elif action == "create_room":
                    try:
                        await client.create_room(str(message.get("name", "")))
                    except ValueError as e:
                        await websocket.send_json({"type": "error", "message": str(e)})

                elif action == "send_message":
                    if client.send_message(str(message.get("text", ""))) is None:
                        await websocket.send_json({"type": "error", "message": "Message text required"})

                else:
                    await websocket.send_json(
                        {
                            "type": "error",
                            "message": f"Unknown action: {action}",
                        }
                    )

            except json.JSONDecodeError:
                await websocket.send_json(
                    {
                        "type": "error",
                        "message": "Invalid JSON",
                    }
                )

    except WebSocketDisconnect:
        state.renderer_sockets.discard(websocket)
        logger.info("✗ Renderer disconnected. Total: %d", len(state.renderer_sockets))
    except Exception as e:
        logger.error("Renderer WebSocket error: %s", e)
        state.renderer_sockets.discard(websocket)
