"""
services/channel_service.py
---------------------------
Channel resolver: creates and de-duplicates conversations.

Duplicate rules:
  - general: at most one channel per exact member set (order-independent,
    duplicate ids collapsed). A second request fails with ConflictError.
  - custom:  the name is unique per tenant. A second request with a known
    name returns the existing channel, whatever members it asked for.

Both rules are checked up front and backed by partial unique indexes; the
INSERT runs inside a SAVEPOINT so a concurrent writer that wins the race is
detected without poisoning the surrounding transaction.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from slime_talks.core.exceptions import ConflictError, NotFoundError, ValidationError
from slime_talks.core.logging import get_logger
from slime_talks.db.base import generate_uuid, utcnow
from slime_talks.db.pagination import Page, paginate
from slime_talks.models.channel import GENERAL_CHANNEL_NAME, Channel, ChannelType
from slime_talks.models.customer import Customer
from slime_talks.models.tenant import Tenant
from slime_talks.repositories.channel_repository import ChannelRepository, member_key
from slime_talks.repositories.customer_repository import CustomerRepository
from slime_talks.services.notifier import Notifier, TypingStartedFact

logger = get_logger(__name__)

MIN_MEMBERS = 2
MAX_MEMBERS = 5


@dataclass
class ConversationGroup:
    recipient: Customer
    channels: List[Channel] = field(default_factory=list)
    latest_activity: Optional[datetime] = None


class ChannelService:

    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[Notifier] = None,
        id_factory: Callable[[], str] = generate_uuid,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.channels = ChannelRepository(db)
        self.customers = CustomerRepository(db)
        self.notifier = notifier
        self._new_id = id_factory
        self._now = clock

    # ── Creation ──────────────────────────────────────────────────────────────

    async def create_general(self, tenant: Tenant, customer_uuids: Sequence[str]) -> Channel:
        members = await self._resolve_members(tenant, customer_uuids)
        key = member_key(member.id for member in members)

        if await self.channels.find_general(tenant.id, key) is not None:
            logger.warning("Duplicate general channel rejected", tenant_id=tenant.id)
            raise ConflictError("A general channel already exists between these customers")

        channel = self._new_channel(tenant, ChannelType.general, GENERAL_CHANNEL_NAME, key)
        try:
            async with self.db.begin_nested():
                await self.channels.create_with_members(channel, [m.id for m in members])
        except IntegrityError:
            logger.warning("Concurrent general channel creation lost", tenant_id=tenant.id)
            raise ConflictError("A general channel already exists between these customers")

        logger.info("General channel created", channel_uuid=channel.uuid, tenant_id=tenant.id)
        return channel

    async def create_custom(
        self, tenant: Tenant, name: str, customer_uuids: Sequence[str]
    ) -> Channel:
        if not name or not name.strip():
            raise ValidationError.for_field("name", "Channel name is required for custom channels")
        members = await self._resolve_members(tenant, customer_uuids)

        existing = await self.channels.find_custom_by_name(tenant.id, name)
        if existing is not None:
            logger.info("Custom channel reused by name", channel_uuid=existing.uuid, tenant_id=tenant.id)
            return existing

        key = member_key(member.id for member in members)
        channel = self._new_channel(tenant, ChannelType.custom, name, key)
        try:
            async with self.db.begin_nested():
                await self.channels.create_with_members(channel, [m.id for m in members])
        except IntegrityError:
            existing = await self.channels.find_custom_by_name(tenant.id, name)
            if existing is None:
                raise
            return existing

        logger.info("Custom channel created", channel_uuid=channel.uuid, tenant_id=tenant.id)
        return channel

    def _new_channel(self, tenant: Tenant, kind: ChannelType, name: str, key: str) -> Channel:
        now = self._now()
        return Channel(
            uuid=self._new_id(),
            tenant_id=tenant.id,
            type=kind.value,
            name=name,
            member_key=key,
            last_activity_at=now,
            created_at=now,
            updated_at=now,
        )

    async def _resolve_members(self, tenant: Tenant, customer_uuids: Sequence[str]) -> List[Customer]:
        if not customer_uuids or not (MIN_MEMBERS <= len(customer_uuids) <= MAX_MEMBERS):
            raise ValidationError.for_field(
                "customer_uuids",
                f"Between {MIN_MEMBERS} and {MAX_MEMBERS} customers are required for a channel",
            )
        wanted = list(dict.fromkeys(customer_uuids))
        found = await self.customers.get_many_by_uuid(tenant.id, wanted)
        found_uuids = {customer.uuid for customer in found}
        missing = [uuid for uuid in wanted if uuid not in found_uuids]
        if missing:
            raise ValidationError(
                message="One or more customers do not exist or do not belong to this client",
                errors={"customer_uuids": [f"Unknown customer: {uuid}" for uuid in missing]},
            )
        if len(found) < MIN_MEMBERS:
            raise ValidationError.for_field(
                "customer_uuids", f"At least {MIN_MEMBERS} distinct customers are required"
            )
        return found

    # ── Lookups ───────────────────────────────────────────────────────────────

    async def get_by_uuid(self, tenant: Tenant, uuid: str) -> Channel:
        channel = await self.channels.get_by_uuid(tenant.id, uuid)
        if channel is None:
            raise NotFoundError("Channel not found")
        return channel

    async def members_of(self, tenant: Tenant, uuid: str) -> List[Customer]:
        channel = await self.get_by_uuid(tenant, uuid)
        return await self.channels.members_of(channel)

    async def list(
        self, tenant: Tenant, limit: int = 10, cursor: Optional[str] = None
    ) -> Page[Channel]:
        """Most recently active channels first."""
        return await paginate(
            self.db,
            self.channels.listing(tenant.id),
            order_key=Channel.last_activity_at,
            tiebreak=Channel.id,
            external_id=Channel.uuid,
            descending=True,
            limit=limit,
            cursor=cursor,
        )

    async def list_for_customer(self, tenant: Tenant, customer_uuid: str) -> Page[Channel]:
        """
        Every channel of one customer, most recently active first.

        Unpaginated: the whole result set is returned with
        has_more=False.
        """
        customer = await self.customers.get_by_uuid(tenant.id, customer_uuid)
        if customer is None:
            raise NotFoundError("Customer not found")
        channels = await self.channels.for_customer(tenant.id, customer.id)
        return Page(data=channels, has_more=False, total_count=len(channels))

    async def list_grouped_by_recipient(
        self, tenant: Tenant, requester_email: str
    ) -> List[ConversationGroup]:
        """
        Group the requester's channels under each other member.

        A channel with more than two members appears under every other
        member. Groups are ordered by their latest channel activity.
        """
        requester = await self.customers.get_by_email(tenant.id, requester_email)
        if requester is None:
            raise NotFoundError("Customer not found")

        channels = await self.channels.for_customer(tenant.id, requester.id)
        members = await self.channels.members_by_channel(tenant.id, [c.id for c in channels])

        groups: Dict[int, ConversationGroup] = {}
        for channel in channels:
            for member in members.get(channel.id, []):
                if member.id == requester.id:
                    continue
                group = groups.setdefault(member.id, ConversationGroup(recipient=member))
                group.channels.append(channel)
                if group.latest_activity is None or channel.last_activity_at > group.latest_activity:
                    group.latest_activity = channel.last_activity_at

        return sorted(groups.values(), key=lambda g: g.latest_activity, reverse=True)

    # ── Realtime ──────────────────────────────────────────────────────────────

    async def start_typing(self, tenant: Tenant, channel_uuid: str, customer_uuid: str) -> None:
        channel = await self.get_by_uuid(tenant, channel_uuid)
        customer = await self.customers.get_by_uuid(tenant.id, customer_uuid)
        if customer is None:
            raise ValidationError.for_field(
                "customer_uuid", "Customer does not exist or does not belong to your client."
            )
        if not await self.channels.is_member(channel.id, customer.id):
            raise ValidationError.for_field(
                "customer_uuid", "Customer is not a participant in this channel."
            )
        if self.notifier is not None:
            self.notifier.emit(
                TypingStartedFact(
                    tenant_id=tenant.id,
                    channel_uuid=channel.uuid,
                    channel_name=channel.name,
                    customer_uuid=customer.uuid,
                    customer_name=customer.name,
                    started_at=self._now(),
                )
            )
