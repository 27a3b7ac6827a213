"""
services/message_service.py
----------------------------
Message ledger: append and read messages.

Critical security invariant:
  Every query MUST include tenant_id in the WHERE clause.
  Channel and sender are resolved inside the caller's tenant before
  anything is written, so a guessed uuid from another tenant is rejected.

Ordering asymmetry:
  - a channel's messages are read oldest-first, like a transcript
  - a customer's messages (and messages between two customers) are an
    activity feed, newest-first
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from slime_talks.core.exceptions import ConflictError, NotFoundError, ValidationError
from slime_talks.core.logging import get_logger
from slime_talks.db.base import generate_uuid, utcnow
from slime_talks.db.pagination import Page, paginate
from slime_talks.models.channel import Channel
from slime_talks.models.customer import Customer
from slime_talks.models.message import Message, MessageType
from slime_talks.models.tenant import Tenant
from slime_talks.repositories.channel_repository import ChannelRepository, member_key
from slime_talks.repositories.customer_repository import CustomerRepository
from slime_talks.repositories.message_repository import MESSAGE_LOAD_OPTIONS, MessageRepository
from slime_talks.services.channel_service import ChannelService
from slime_talks.services.notifier import MessageSentFact, Notifier

logger = get_logger(__name__)

MESSAGE_TYPES = tuple(t.value for t in MessageType)


class MessageService:

    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[Notifier] = None,
        id_factory: Callable[[], str] = generate_uuid,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.messages = MessageRepository(db)
        self.channels = ChannelRepository(db)
        self.customers = CustomerRepository(db)
        self.channel_service = ChannelService(db, notifier=notifier, id_factory=id_factory, clock=clock)
        self.notifier = notifier
        self._new_id = id_factory
        self._now = clock

    # ── Writes ────────────────────────────────────────────────────────────────

    async def send(
        self,
        tenant: Tenant,
        channel_uuid: str,
        sender_uuid: str,
        type: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message:
        """
        Append a message to a channel.

        A missing channel or sender is the caller's input mistake here, so
        both surface as ValidationError rather than NotFound.
        """
        channel = await self.channels.get_by_uuid(tenant.id, channel_uuid)
        if channel is None:
            raise ValidationError.for_field(
                "channel_uuid", "Channel does not exist or does not belong to your client."
            )
        sender = await self.customers.get_by_uuid(tenant.id, sender_uuid)
        if sender is None:
            raise ValidationError.for_field(
                "sender_uuid", "Sender does not exist or does not belong to your client."
            )
        return await self._append(tenant, channel, sender, type, content, metadata)

    async def send_to_customer(
        self,
        tenant: Tenant,
        sender_email: str,
        recipient_email: str,
        type: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message:
        """
        Send into the general channel between two customers, creating the
        channel first when it does not exist yet.
        """
        sender = await self.customers.get_by_email(tenant.id, sender_email)
        if sender is None:
            raise NotFoundError("Sender not found")
        recipient = await self.customers.get_by_email(tenant.id, recipient_email)
        if recipient is None:
            raise NotFoundError("Recipient not found")

        try:
            channel = await self.channel_service.create_general(
                tenant, [sender.uuid, recipient.uuid]
            )
        except ConflictError:
            channel = await self.channels.find_general(
                tenant.id, member_key([sender.id, recipient.id])
            )
            if channel is None:
                raise
            logger.debug("Reusing general channel", channel_uuid=channel.uuid, tenant_id=tenant.id)

        return await self._append(tenant, channel, sender, type, content, metadata)

    async def _append(
        self,
        tenant: Tenant,
        channel: Channel,
        sender: Customer,
        type: str,
        content: str,
        metadata: Optional[Dict[str, Any]],
    ) -> Message:
        if type not in MESSAGE_TYPES:
            raise ValidationError.for_field(
                "type", f"Message type must be one of: {', '.join(MESSAGE_TYPES)}"
            )
        if not content or not content.strip():
            raise ValidationError.for_field("content", "Content is required")
        if not await self.channels.is_member(channel.id, sender.id):
            logger.warning(
                "Non-member send rejected",
                channel_uuid=channel.uuid,
                sender_uuid=sender.uuid,
                tenant_id=tenant.id,
            )
            raise ValidationError.for_field(
                "sender_uuid", "Sender is not a participant in this channel."
            )

        now = self._now()
        message = Message(
            uuid=self._new_id(),
            tenant_id=tenant.id,
            channel_id=channel.id,
            sender_id=sender.id,
            type=type,
            content=content,
            metadata_=metadata,
            created_at=now,
            updated_at=now,
        )
        message.channel = channel
        message.sender = sender
        await self.messages.add(message)
        await self.channels.touch(channel, now)

        logger.info(
            "Message stored",
            message_uuid=message.uuid,
            channel_uuid=channel.uuid,
            tenant_id=tenant.id,
        )
        if self.notifier is not None:
            self.notifier.emit(
                MessageSentFact(
                    tenant_id=tenant.id,
                    channel_uuid=channel.uuid,
                    channel_name=channel.name,
                    channel_type=channel.type,
                    message_uuid=message.uuid,
                    sender_uuid=sender.uuid,
                    sender_name=sender.name,
                    type=message.type,
                    content=message.content,
                    created_at=message.created_at,
                    metadata=message.metadata_,
                )
            )
        return message

    # ── Reads ─────────────────────────────────────────────────────────────────

    async def list_for_channel(
        self, tenant: Tenant, channel_uuid: str, limit: int = 10, cursor: Optional[str] = None
    ) -> Page[Message]:
        channel = await self.channels.get_by_uuid(tenant.id, channel_uuid)
        if channel is None:
            raise NotFoundError("Channel not found")
        return await self._page(
            self.messages.in_channel(tenant.id, channel.id), False, limit, cursor
        )

    async def list_for_customer(
        self, tenant: Tenant, customer_uuid: str, limit: int = 10, cursor: Optional[str] = None
    ) -> Page[Message]:
        customer = await self.customers.get_by_uuid(tenant.id, customer_uuid)
        if customer is None:
            raise NotFoundError("Customer not found")
        return await self._page(
            self.messages.messages_by_sender(tenant.id, customer.id), True, limit, cursor
        )

    async def list_between_customers(
        self,
        tenant: Tenant,
        email1: str,
        email2: str,
        limit: int = 10,
        cursor: Optional[str] = None,
    ) -> Page[Message]:
        """Messages either customer sent in any channel both belong to."""
        first = await self.customers.get_by_email(tenant.id, email1)
        if first is None:
            raise NotFoundError("Customer not found")
        second = await self.customers.get_by_email(tenant.id, email2)
        if second is None:
            raise NotFoundError("Customer not found")

        pair = [first.id, second.id]
        stmt = self.messages.between(
            tenant.id, self.channels.shared_channel_ids(tenant.id, pair), pair
        )
        return await self._page(stmt, True, limit, cursor)

    async def _page(self, stmt, descending: bool, limit: int, cursor: Optional[str]) -> Page[Message]:
        return await paginate(
            self.db,
            stmt,
            order_key=Message.created_at,
            tiebreak=Message.id,
            external_id=Message.uuid,
            descending=descending,
            limit=limit,
            cursor=cursor,
            options=MESSAGE_LOAD_OPTIONS,
        )
