# chatsync/models/models.py
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Sender(str, Enum):
    SELF = "self"
    REMOTE = "remote"


class Room(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    last_message_preview: str = Field("", alias="lastMessagePreview")
    last_updated: int = Field(alias="lastUpdated")

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True)


class Message(BaseModel):
    """A single accepted chat message. Never mutated once stored."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    text: str
    sender: Sender
    sender_display_name: str = Field("Anonymous", alias="senderDisplayName")
    timestamp: int
    room_id: str = Field(alias="roomId")

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class WireEvent(BaseModel):
    """
    JSON frame exchanged with the relay.

    Inbound frames may omit roomId (the reconciler fills in the active room),
    senderId, senderName and timestamp; a null senderName counts as
    omitted. chatId is accepted as a legacy spelling of roomId.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    text: str
    sender_id: Optional[str] = Field(None, alias="senderId")
    sender_name: Optional[str] = Field(None, alias="senderName")
    timestamp: Optional[int] = None
    room_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("roomId", "chatId"),
        serialization_alias="roomId",
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# API REQUESTS
# ============================================================================

class CreateRoomRequest(BaseModel):
    name: str


class SendMessageRequest(BaseModel):
    text: str


class PreferencesUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_name: Optional[str] = Field(None, alias="userName")
    dark_mode: Optional[bool] = Field(None, alias="darkMode")
