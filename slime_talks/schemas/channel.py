"""
schemas/channel.py
------------------
Pydantic models for Channel creation, typing signals and responses.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from slime_talks.models.channel import Channel, ChannelType
from slime_talks.schemas.common import unix_seconds
from slime_talks.schemas.customer import CustomerRead


class ChannelCreate(BaseModel):
    type: ChannelType = Field(..., examples=["general"])
    customer_uuids: List[str] = Field(..., min_length=2, max_length=5)
    name: Optional[str] = Field(default=None, max_length=255, examples=["support"])

    @model_validator(mode="after")
    def name_required_for_custom(self) -> "ChannelCreate":
        if self.type == ChannelType.custom and not (self.name and self.name.strip()):
            raise ValueError("name is required for custom channels")
        return self


class TypingCreate(BaseModel):
    customer_uuid: str


class ChannelRead(BaseModel):
    object: Literal["channel"] = "channel"
    id: str
    type: str
    name: str
    created: Optional[int] = None
    last_activity: Optional[int] = None
    livemode: bool = False

    @classmethod
    def from_model(cls, channel: Channel) -> "ChannelRead":
        return cls(
            id=channel.uuid,
            type=channel.type,
            name=channel.name,
            created=unix_seconds(channel.created_at),
            last_activity=unix_seconds(channel.last_activity_at),
        )


class ConversationRead(BaseModel):
    object: Literal["conversation"] = "conversation"
    recipient: CustomerRead
    channels: List[ChannelRead]
    latest_activity: Optional[int] = None


class ConversationList(BaseModel):
    object: Literal["list"] = "list"
    data: List[ConversationRead]
    total_count: int
