# chatsync/api/routes/messages.py

from typing import List

from fastapi import APIRouter, HTTPException

from chatsync.api.utils import require_client
from chatsync.models import Message, SendMessageRequest

router = APIRouter()


@router.get("/messages", response_model=List[Message], response_model_by_alias=True)
async def list_messages():
    """Projected view: messages of the active room in arrival order."""
    return require_client().messages


@router.post("/messages", response_model=Message, response_model_by_alias=True)
async def send_message(request: SendMessageRequest):
    """
    Compose a message in the active room.

    The message is stored locally whether or not the transport is
    connected; check /health for connection state.

    Raises:
        HTTPException: 400 if text is blank
    """
    message = require_client().send_message(request.text)
    if message is None:
        raise HTTPException(status_code=400, detail="Message text required")
    return message
