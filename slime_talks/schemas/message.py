"""
schemas/message.py
------------------
Pydantic models for sending and listing messages.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from slime_talks.models.message import Message, MessageType
from slime_talks.schemas.common import Email, unix_seconds


class MessageCreate(BaseModel):
    channel_uuid: str
    sender_uuid: str
    type: MessageType = MessageType.text
    content: str = Field(..., min_length=1, examples=["Hello there!"])
    metadata: Optional[Dict[str, Any]] = None


class MessageToCustomerCreate(BaseModel):
    sender_email: Email
    recipient_email: Email
    type: MessageType = MessageType.text
    content: str = Field(..., min_length=1)
    metadata: Optional[Dict[str, Any]] = None


class MessageRead(BaseModel):
    object: Literal["message"] = "message"
    id: str
    channel_id: str
    sender_id: str
    type: str
    content: str
    metadata: Optional[Dict[str, Any]] = None
    created: Optional[int] = None
    livemode: bool = False

    @classmethod
    def from_model(cls, message: Message) -> "MessageRead":
        # channel and sender must already be loaded (see MESSAGE_LOAD_OPTIONS)
        return cls(
            id=message.uuid,
            channel_id=message.channel.uuid,
            sender_id=message.sender.uuid,
            type=message.type,
            content=message.content,
            metadata=message.metadata_,
            created=unix_seconds(message.created_at),
        )
