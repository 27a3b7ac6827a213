"""
models/customer.py
------------------
Customer (end user of a tenant) ORM model.

Email is unique per tenant, not globally. Customers are soft-deleted:
deleted_at is set and the row is kept for audit. There is no implicit
default scope; repositories add ``deleted_at IS NULL`` themselves.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from slime_talks.db.base import Base, ExternalIdMixin, TimestampMixin, UTCDateTime


class Customer(Base, ExternalIdMixin, TimestampMixin):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_customers_tenant_email"),
    )

    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    def __repr__(self) -> str:
        return f"<Customer id={self.id} uuid={self.uuid} email={self.email}>"
