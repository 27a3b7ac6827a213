"""
models/tenant.py
----------------
Tenant (client application) ORM model.

Each tenant is an isolated organisational unit. All data belonging to a tenant
is scoped by tenant_id at the query level; never trust application-level
filtering alone; always include tenant_id in WHERE clauses.

The API token is never stored; only its passlib hash is.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from slime_talks.db.base import Base, ExternalIdMixin, TimestampMixin, UTCDateTime


class Tenant(Base, ExternalIdMixin, TimestampMixin):
    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    public_key: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    api_token_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    token_expires_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    allowed_ips: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    allowed_subdomains: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} name={self.name} domain={self.domain}>"
