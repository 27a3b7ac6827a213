"""
repositories/message_repository.py
----------------------------------
Message ledger queries. Messages are append-only; there is no update or
delete path.
"""

from typing import Sequence

from sqlalchemy import Select
from sqlalchemy.orm import joinedload

from slime_talks.models.message import Message
from slime_talks.repositories.base import TenantScopedRepository

# channel and sender are needed to render every message
MESSAGE_LOAD_OPTIONS = (joinedload(Message.channel), joinedload(Message.sender))


class MessageRepository(TenantScopedRepository[Message]):
    model = Message

    def in_channel(self, tenant_id: int, channel_id: int) -> Select:
        return self.scoped(tenant_id, Message.channel_id == channel_id)

    def messages_by_sender(self, tenant_id: int, sender_id: int) -> Select:
        return self.scoped(tenant_id, Message.sender_id == sender_id)

    def between(self, tenant_id: int, shared_channel_ids: Select, sender_ids: Sequence[int]) -> Select:
        return self.scoped(
            tenant_id,
            Message.channel_id.in_(shared_channel_ids),
            Message.sender_id.in_(list(sender_ids)),
        )
