"""
repositories/channel_repository.py
----------------------------------
Channel and membership queries.

The membership table carries no tenant_id of its own. It is only ever
reached through a channel or customer that was already resolved inside the
caller's tenant, and member customers are re-filtered by tenant_id.
"""

import json
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import Select, select

from slime_talks.models.channel import Channel, ChannelMember, ChannelType
from slime_talks.models.customer import Customer
from slime_talks.repositories.base import TenantScopedRepository


def member_key(customer_ids: Iterable[int]) -> str:
    """Canonical member-set signature: sorted, de-duplicated, JSON-serialised ids."""
    return json.dumps(sorted(set(customer_ids)), separators=(",", ":"))


class ChannelRepository(TenantScopedRepository[Channel]):
    model = Channel

    async def find_general(self, tenant_id: int, key: str) -> Optional[Channel]:
        return await self.first(
            self.scoped(
                tenant_id,
                Channel.type == ChannelType.general.value,
                Channel.member_key == key,
            )
        )

    async def find_custom_by_name(self, tenant_id: int, name: str) -> Optional[Channel]:
        return await self.first(
            self.scoped(
                tenant_id,
                Channel.type == ChannelType.custom.value,
                Channel.name == name,
            )
        )

    async def create_with_members(self, channel: Channel, customer_ids: Sequence[int]) -> Channel:
        """Insert the channel and its membership rows. Caller owns the SAVEPOINT."""
        self.db.add(channel)
        await self.db.flush()
        self.db.add_all(
            [
                ChannelMember(channel_id=channel.id, customer_id=customer_id, created_at=channel.created_at)
                for customer_id in sorted(set(customer_ids))
            ]
        )
        await self.db.flush()
        return channel

    async def is_member(self, channel_id: int, customer_id: int) -> bool:
        result = await self.db.execute(
            select(ChannelMember.id)
            .where(
                ChannelMember.channel_id == channel_id,
                ChannelMember.customer_id == customer_id,
            )
            .limit(1)
        )
        return result.first() is not None

    async def touch(self, channel: Channel, when: datetime) -> Channel:
        channel.last_activity_at = when
        await self.db.flush()
        return channel

    # ── Relationship queries ──────────────────────────────────────────────────

    async def members_of(self, channel: Channel) -> List[Customer]:
        result = await self.db.execute(
            select(Customer)
            .join(ChannelMember, ChannelMember.customer_id == Customer.id)
            .where(
                ChannelMember.channel_id == channel.id,
                Customer.tenant_id == channel.tenant_id,
                Customer.deleted_at.is_(None),
            )
            .order_by(ChannelMember.id)
        )
        return list(result.scalars().all())

    async def members_by_channel(
        self, tenant_id: int, channel_ids: Sequence[int]
    ) -> Dict[int, List[Customer]]:
        grouped: Dict[int, List[Customer]] = defaultdict(list)
        if not channel_ids:
            return grouped
        result = await self.db.execute(
            select(ChannelMember.channel_id, Customer)
            .join(Customer, ChannelMember.customer_id == Customer.id)
            .where(
                ChannelMember.channel_id.in_(list(channel_ids)),
                Customer.tenant_id == tenant_id,
                Customer.deleted_at.is_(None),
            )
            .order_by(ChannelMember.id)
        )
        for channel_id, customer in result.all():
            grouped[channel_id].append(customer)
        return grouped

    def shared_channel_ids(self, tenant_id: int, customer_ids: Sequence[int]) -> Select:
        """Ids of the tenant's channels that contain every one of ``customer_ids``."""
        distinct_ids = sorted(set(customer_ids))
        memberships = [
            select(ChannelMember.channel_id).where(ChannelMember.customer_id == customer_id)
            for customer_id in distinct_ids
        ]
        stmt = select(Channel.id).where(Channel.tenant_id == tenant_id)
        for membership in memberships:
            stmt = stmt.where(Channel.id.in_(membership))
        return stmt

    # ── Listing statements ────────────────────────────────────────────────────

    def listing(self, tenant_id: int) -> Select:
        return self.scoped(tenant_id)

    async def for_customer(self, tenant_id: int, customer_id: int) -> List[Channel]:
        result = await self.db.execute(
            self.scoped(tenant_id)
            .join(ChannelMember, ChannelMember.channel_id == Channel.id)
            .where(ChannelMember.customer_id == customer_id)
            .order_by(Channel.last_activity_at.desc(), Channel.id.desc())
        )
        return list(result.scalars().all())
