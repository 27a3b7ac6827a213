"""
models/message.py
-----------------
Message ORM model: one immutable entry in a channel's ledger.

tenant_id is denormalised here (it could be derived via channel.tenant_id)
to allow efficient tenant-scoped queries without a JOIN.

channel and sender are lazy="raise": repositories load them explicitly
with joinedload() so no listing ever issues per-row queries.
"""

from enum import Enum as PyEnum

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from slime_talks.db.base import Base, ExternalIdMixin, TimestampMixin


class MessageType(str, PyEnum):
    text = "text"
    image = "image"
    file = "file"


class Message(Base, ExternalIdMixin, TimestampMixin):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_channel_created", "channel_id", "created_at", "id"),
        Index("ix_messages_sender_created", "sender_id", "created_at", "id"),
    )

    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    channel_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("channels.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, nullable=True)

    channel: Mapped["Channel"] = relationship("Channel", lazy="raise")  # noqa: F821
    sender: Mapped["Customer"] = relationship("Customer", lazy="raise")  # noqa: F821

    def __repr__(self) -> str:
        return f"<Message id={self.id} uuid={self.uuid} channel_id={self.channel_id}>"
