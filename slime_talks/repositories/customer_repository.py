"""
repositories/customer_repository.py
-----------------------------------
Customer directory queries.

Soft-deleted customers are excluded by an explicit ``deleted_at IS NULL``
clause on every lookup and listing; only the email-uniqueness check looks
at removed rows too, because their email stays reserved.
"""

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import Select, and_, case, func, or_, select
from sqlalchemy.orm import aliased

from slime_talks.models.channel import ChannelMember
from slime_talks.models.customer import Customer
from slime_talks.models.message import Message
from slime_talks.repositories.base import TenantScopedRepository


class CustomerRepository(TenantScopedRepository[Customer]):
    model = Customer

    def present(self, tenant_id: int, *criteria) -> Select:
        return self.scoped(tenant_id, Customer.deleted_at.is_(None), *criteria)

    async def get_by_uuid(self, tenant_id: int, uuid: str) -> Optional[Customer]:
        return await self.first(self.present(tenant_id, Customer.uuid == uuid))

    async def get_by_email(self, tenant_id: int, email: str) -> Optional[Customer]:
        return await self.first(self.present(tenant_id, Customer.email == email))

    async def get_many_by_uuid(self, tenant_id: int, uuids: Sequence[str]) -> List[Customer]:
        if not uuids:
            return []
        result = await self.db.execute(self.present(tenant_id, Customer.uuid.in_(list(uuids))))
        return list(result.scalars().all())

    async def email_taken(self, tenant_id: int, email: str) -> bool:
        result = await self.db.execute(
            select(Customer.id)
            .where(Customer.tenant_id == tenant_id, Customer.email == email)
            .limit(1)
        )
        return result.first() is not None

    async def soft_delete(self, customer: Customer, when: datetime) -> Customer:
        customer.deleted_at = when
        await self.db.flush()
        return customer

    # ── Listing statements (fed to the pagination engine) ────────────────────

    def listing(self, tenant_id: int) -> Select:
        return self.present(tenant_id)

    def active_listing(self, tenant_id: int):
        """
        Customers who have sent at least one message, with the time of their
        latest sent message.

        Returns:
            (statement selecting (Customer, latest_at), latest_at column)
        """
        activity = (
            select(
                Message.sender_id.label("customer_id"),
                func.max(Message.created_at).label("latest_at"),
            )
            .where(Message.tenant_id == tenant_id)
            .group_by(Message.sender_id)
            .subquery("activity")
        )
        stmt = (
            select(Customer, activity.c.latest_at)
            .select_from(Customer)
            .join(activity, activity.c.customer_id == Customer.id)
            .where(Customer.tenant_id == tenant_id, Customer.deleted_at.is_(None))
        )
        return stmt, activity.c.latest_at

    def active_for_sender_listing(self, tenant_id: int, sender_id: int):
        """
        Counterparties of ``sender_id``: customers sharing a channel with the
        sender who have sent at least one message in a shared channel.
        latest_at is the newest message in the shared channels sent by either
        of the two.

        Returns:
            (statement selecting (Customer, latest_at), latest_at column)
        """
        other = aliased(ChannelMember)
        mine = aliased(ChannelMember)
        conversation = (
            select(
                other.customer_id.label("customer_id"),
                func.max(Message.created_at).label("latest_at"),
            )
            .select_from(other)
            .join(
                mine,
                and_(mine.channel_id == other.channel_id, mine.customer_id == sender_id),
            )
            .join(
                Message,
                and_(
                    Message.channel_id == other.channel_id,
                    or_(
                        Message.sender_id == other.customer_id,
                        Message.sender_id == sender_id,
                    ),
                ),
            )
            .where(other.customer_id != sender_id, Message.tenant_id == tenant_id)
            .group_by(other.customer_id)
            .having(
                func.sum(case((Message.sender_id == other.customer_id, 1), else_=0)) > 0
            )
            .subquery("conversation")
        )
        stmt = (
            select(Customer, conversation.c.latest_at)
            .select_from(Customer)
            .join(conversation, conversation.c.customer_id == Customer.id)
            .where(Customer.tenant_id == tenant_id, Customer.deleted_at.is_(None))
        )
        return stmt, conversation.c.latest_at
