"""
services/tenant_service.py
--------------------------
Business logic for tenant (client) onboarding and authentication.

Service layer is responsible for:
  - Issuing credentials (public key + one-time API token)
  - Resolving an authenticated tenant from request credentials
  - Returning domain objects (ORM models) to the route layer
  - Never returning HTTP responses (that's the route's job)
"""

from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from slime_talks.core.config import settings
from slime_talks.core.exceptions import AuthError, NotFoundError, ValidationError
from slime_talks.core.logging import get_logger
from slime_talks.core.security import (
    extract_host,
    generate_api_token,
    generate_public_key,
    hash_api_token,
    ip_allowed,
    origin_allowed,
    verify_api_token,
)
from slime_talks.db.base import generate_uuid, utcnow
from slime_talks.models.tenant import Tenant

logger = get_logger(__name__)

_INVALID_CREDENTIALS = "Invalid API credentials"


class TenantService:

    def __init__(
        self,
        db: AsyncSession,
        id_factory: Callable[[], str] = generate_uuid,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self._new_id = id_factory
        self._now = clock

    async def create_tenant(
        self,
        name: str,
        domain: str,
        allowed_ips: Optional[Sequence[str]] = None,
        allowed_subdomains: Optional[Sequence[str]] = None,
    ) -> Tuple[Tenant, str]:
        """
        Register a tenant and issue its credentials.

        Returns:
            (tenant, plain_api_token). The plain token is not stored and
            cannot be recovered later.
        """
        if not name or not name.strip():
            raise ValidationError.for_field("name", "Name is required")
        if not domain or not domain.strip():
            raise ValidationError.for_field("domain", "Domain is required")

        now = self._now()
        token = generate_api_token()
        expires_at = None
        if settings.API_TOKEN_EXPIRE_DAYS:
            expires_at = now + timedelta(days=settings.API_TOKEN_EXPIRE_DAYS)

        tenant = Tenant(
            uuid=self._new_id(),
            name=name.strip(),
            domain=domain.strip().lower(),
            public_key=generate_public_key(),
            api_token_hash=hash_api_token(token),
            token_expires_at=expires_at,
            allowed_ips=list(allowed_ips or []),
            allowed_subdomains=list(allowed_subdomains or []),
            created_at=now,
            updated_at=now,
        )
        self.db.add(tenant)
        await self.db.flush()
        logger.info("Tenant created", tenant_id=tenant.id, name=tenant.name, domain=tenant.domain)
        return tenant, token

    async def get_by_public_key(self, public_key: str) -> Optional[Tenant]:
        result = await self.db.execute(select(Tenant).where(Tenant.public_key == public_key))
        return result.scalar_one_or_none()

    async def authenticate(
        self,
        public_key: Optional[str],
        token: Optional[str],
        origin: Optional[str] = None,
        client_ip: Optional[str] = None,
        enforce_origin: Optional[bool] = None,
    ) -> Tenant:
        """
        Resolve the tenant behind a (public key, API token) pair.
        Every failure raises the same AuthError so callers cannot discover
        which part of the credential was wrong.
        """
        if not public_key or not token:
            raise AuthError(_INVALID_CREDENTIALS)

        tenant = await self.get_by_public_key(public_key)
        if tenant is None or not verify_api_token(token, tenant.api_token_hash):
            logger.warning("Tenant authentication failed", reason="credentials")
            raise AuthError(_INVALID_CREDENTIALS)
        if tenant.is_revoked:
            logger.warning("Tenant authentication failed", reason="revoked", tenant_id=tenant.id)
            raise AuthError(_INVALID_CREDENTIALS)
        if tenant.token_expires_at is not None and tenant.token_expires_at <= self._now():
            logger.warning("Tenant authentication failed", reason="expired", tenant_id=tenant.id)
            raise AuthError(_INVALID_CREDENTIALS)

        # ENFORCE_ORIGIN only relaxes the Origin check; an IP allow-list always applies
        if settings.ENFORCE_ORIGIN if enforce_origin is None else enforce_origin:
            if not origin_allowed(extract_host(origin), tenant.domain, tenant.allowed_subdomains):
                logger.warning("Tenant authentication failed", reason="origin", tenant_id=tenant.id)
                raise AuthError("Origin not allowed")
        if not ip_allowed(client_ip, tenant.allowed_ips):
            logger.warning("Tenant authentication failed", reason="ip", tenant_id=tenant.id)
            raise AuthError("IP address not allowed")

        return tenant

    async def revoke(self, public_key: str) -> Tenant:
        tenant = await self.get_by_public_key(public_key)
        if tenant is None:
            raise NotFoundError("Client not found")
        if tenant.revoked_at is None:
            tenant.revoked_at = self._now()
            await self.db.flush()
            logger.info("Tenant revoked", tenant_id=tenant.id)
        return tenant

    async def get_profile(self, tenant: Tenant, uuid: str) -> Tenant:
        """A tenant may only read its own record; any other id is NotFound."""
        if uuid != tenant.uuid:
            raise NotFoundError("Client not found")
        return tenant
