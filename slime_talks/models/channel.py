"""
models/channel.py
-----------------
Channel (conversation) and channel membership ORM models.

member_key is the sorted, JSON-serialised list of member customer ids. Two
partial unique indexes make the duplicate rules hold even for concurrent
writers:
  - at most one general channel per (tenant, member_key)
  - at most one custom channel per (tenant, name)

Membership is fixed at creation time.
"""

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from slime_talks.db.base import Base, ExternalIdMixin, TimestampMixin, UTCDateTime, utcnow


class ChannelType(str, PyEnum):
    general = "general"
    custom = "custom"


GENERAL_CHANNEL_NAME = "general"


class Channel(Base, ExternalIdMixin, TimestampMixin):
    __tablename__ = "channels"
    __table_args__ = (
        Index(
            "uq_channels_general_members",
            "tenant_id",
            "member_key",
            unique=True,
            postgresql_where=text("type = 'general'"),
            sqlite_where=text("type = 'general'"),
        ),
        Index(
            "uq_channels_custom_name",
            "tenant_id",
            "name",
            unique=True,
            postgresql_where=text("type = 'custom'"),
            sqlite_where=text("type = 'custom'"),
        ),
        Index("ix_channels_tenant_type_name", "tenant_id", "type", "name"),
        Index("ix_channels_tenant_activity", "tenant_id", "last_activity_at", "id"),
    )

    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    member_key: Mapped[str] = mapped_column(Text, nullable=False)
    last_activity_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<Channel id={self.id} uuid={self.uuid} type={self.type} name={self.name}>"


class ChannelMember(Base):
    __tablename__ = "channel_customer"
    __table_args__ = (
        UniqueConstraint("channel_id", "customer_id", name="uq_channel_customer"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("channels.id", ondelete="CASCADE"),
        nullable=False,
    )
    customer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow
    )
