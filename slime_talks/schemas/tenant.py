"""
schemas/tenant.py
-----------------
Pydantic response model for the Tenant (client) profile.

Credentials (token hash) are never part of any response schema.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from slime_talks.models.tenant import Tenant
from slime_talks.schemas.common import unix_seconds


class TenantRead(BaseModel):
    object: Literal["client"] = "client"
    id: str
    name: str
    domain: str
    public_key: str
    allowed_ips: List[str] = Field(default_factory=list)
    allowed_subdomains: List[str] = Field(default_factory=list)
    created: Optional[int] = None
    livemode: bool = False

    @classmethod
    def from_model(cls, tenant: Tenant) -> "TenantRead":
        return cls(
            id=tenant.uuid,
            name=tenant.name,
            domain=tenant.domain,
            public_key=tenant.public_key,
            allowed_ips=tenant.allowed_ips or [],
            allowed_subdomains=tenant.allowed_subdomains or [],
            created=unix_seconds(tenant.created_at),
        )
