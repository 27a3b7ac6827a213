"""
services/customer_service.py
----------------------------
Customer directory: registration, lookups, listings and soft delete.

All queries are scoped by tenant_id to enforce strict data isolation, and
every operation re-reads state from the database; nothing is cached
between calls.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from slime_talks.core.exceptions import ConflictError, NotFoundError, ValidationError
from slime_talks.core.logging import get_logger
from slime_talks.db.base import generate_uuid, utcnow
from slime_talks.db.pagination import Page, paginate
from slime_talks.models.customer import Customer
from slime_talks.models.tenant import Tenant
from slime_talks.repositories.customer_repository import CustomerRepository

logger = get_logger(__name__)


@dataclass
class CustomerWithActivity:
    customer: Customer
    latest_message_at: datetime


class CustomerService:

    def __init__(
        self,
        db: AsyncSession,
        id_factory: Callable[[], str] = generate_uuid,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.customers = CustomerRepository(db)
        self._new_id = id_factory
        self._now = clock

    async def create(
        self,
        tenant: Tenant,
        name: str,
        email: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Customer:
        """
        Register a new customer.
        Raises ValidationError on an empty name or malformed email and
        ConflictError when the email is already used within this tenant
        (the comparison is case-sensitive, as stored).
        """
        if not name or not name.strip():
            raise ValidationError.for_field("name", "Name is required")
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            raise ValidationError.for_field("email", "Valid email is required")

        if await self.customers.email_taken(tenant.id, email):
            logger.warning("Duplicate customer email", tenant_id=tenant.id)
            raise ConflictError("Email already exists for this client")

        now = self._now()
        customer = Customer(
            uuid=self._new_id(),
            tenant_id=tenant.id,
            name=name,
            email=email,
            metadata_=metadata or {},
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.db.begin_nested():
                await self.customers.add(customer)
        except IntegrityError:
            raise ConflictError("Email already exists for this client")

        logger.info("Customer created", customer_uuid=customer.uuid, tenant_id=tenant.id)
        return customer

    async def get_by_uuid(self, tenant: Tenant, uuid: str) -> Customer:
        customer = await self.customers.get_by_uuid(tenant.id, uuid)
        if customer is None:
            raise NotFoundError("Customer not found")
        return customer

    async def get_by_email(self, tenant: Tenant, email: str) -> Customer:
        customer = await self.customers.get_by_email(tenant.id, email)
        if customer is None:
            raise NotFoundError("Customer not found")
        return customer

    async def delete(self, tenant: Tenant, uuid: str) -> Customer:
        """Soft delete: the row is kept for audit and hidden from every query."""
        customer = await self.get_by_uuid(tenant, uuid)
        await self.customers.soft_delete(customer, self._now())
        logger.info("Customer deleted", customer_uuid=uuid, tenant_id=tenant.id)
        return customer

    async def list(
        self, tenant: Tenant, limit: int = 10, cursor: Optional[str] = None
    ) -> Page[Customer]:
        """Newest customers first."""
        return await paginate(
            self.db,
            self.customers.listing(tenant.id),
            order_key=Customer.created_at,
            tiebreak=Customer.id,
            external_id=Customer.uuid,
            descending=True,
            limit=limit,
            cursor=cursor,
        )

    async def list_active(
        self, tenant: Tenant, limit: int = 10, cursor: Optional[str] = None
    ) -> Page[CustomerWithActivity]:
        """Customers who have sent messages, most recent sender first."""
        stmt, latest_at = self.customers.active_listing(tenant.id)
        return await self._activity_page(stmt, latest_at, limit, cursor)

    async def list_active_for_sender(
        self,
        tenant: Tenant,
        sender_email: str,
        limit: int = 10,
        cursor: Optional[str] = None,
    ) -> Page[CustomerWithActivity]:
        """
        Counterparties of ``sender_email``, most recent conversation first.

        An unknown sender yields an empty page rather than NotFound.
        """
        sender = await self.customers.get_by_email(tenant.id, sender_email)
        if sender is None:
            return Page.empty()
        stmt, latest_at = self.customers.active_for_sender_listing(tenant.id, sender.id)
        return await self._activity_page(stmt, latest_at, limit, cursor)

    async def _activity_page(self, stmt, latest_at, limit, cursor) -> Page[CustomerWithActivity]:
        page = await paginate(
            self.db,
            stmt,
            order_key=latest_at,
            tiebreak=Customer.id,
            external_id=Customer.uuid,
            descending=True,
            limit=limit,
            cursor=cursor,
        )
        page.data = [
            CustomerWithActivity(customer=customer, latest_message_at=latest)
            for customer, latest in page.data
        ]
        return page
