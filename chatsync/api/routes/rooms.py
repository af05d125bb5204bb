# chatsync/api/routes/rooms.py

from typing import List

from fastapi import APIRouter, HTTPException

from chatsync.api.utils import require_client
from chatsync.models import CreateRoomRequest, Message, Room

router = APIRouter()

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@router.get("/rooms", response_model=List[Room], response_model_by_alias=True)
async def list_rooms():
    """
    List all rooms, most recently updated first.

    Returns:
        List[Room]: Room summaries with last message preview
    """
    return require_client().rooms


@router.post("/rooms", response_model=Room, response_model_by_alias=True)
async def create_room(request: CreateRoomRequest):
    """
    Create a new room and make it the active room.

    Args:
        request: CreateRoomRequest with name

    Returns:
        Room: The newly created room

    Raises:
        HTTPException: 400 if name is empty
    """
    client = require_client()
    try:
        return await client.create_room(request.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/rooms/{room_id}", response_model=Room, response_model_by_alias=True)
async def get_room(room_id: str):
    room = require_client().directory.get(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return room


@router.post("/rooms/{room_id}/select", response_model=List[Message], response_model_by_alias=True)
async def select_room(room_id: str):
    """
    Switch the active room.

    Any room id is accepted, including ids with no directory entry; the
    projected view is simply whatever the log holds for that id.

    Returns:
        List[Message]: The projected view of the new room
    """
    return await require_client().select_room(room_id)
