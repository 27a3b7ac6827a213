"""
models/__init__.py
------------------
Re-export all models so init_models() can import Base and discover
all tables via a single import:

    from slime_talks.models import Base
"""

from slime_talks.db.base import Base
from slime_talks.models.tenant import Tenant
from slime_talks.models.customer import Customer
from slime_talks.models.channel import (
    GENERAL_CHANNEL_NAME,
    Channel,
    ChannelMember,
    ChannelType,
)
from slime_talks.models.message import Message, MessageType

__all__ = [
    "Base",
    "Tenant",
    "Customer",
    "Channel",
    "ChannelMember",
    "ChannelType",
    "GENERAL_CHANNEL_NAME",
    "Message",
    "MessageType",
]
