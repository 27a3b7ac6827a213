"""
dependencies.py
---------------
FastAPI dependency injection functions: tenant authentication and the
per-request service graph.

Flow:
  1. HTTPBearer extracts the API token from the Authorization header.
  2. X-Public-Key identifies the tenant; Origin (or Referer) and the client
     address are checked against the tenant's registration.
  3. get_current_tenant re-reads the tenant on every request, so a revoked
     tenant is rejected immediately.
  4. Service factories share the request's session and notifier, so every
     write of one request commits (and notifies) together.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from slime_talks.core.logging import bind_request_context
from slime_talks.db.session import get_db
from slime_talks.models.tenant import Tenant
from slime_talks.services.channel_service import ChannelService
from slime_talks.services.customer_service import CustomerService
from slime_talks.services.message_service import MessageService
from slime_talks.services.notifier import TransactionalNotifier, broadcast_hub
from slime_talks.services.tenant_service import TenantService


# auto_error=False: missing credentials become our AuthError envelope, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_tenant(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    x_public_key: Annotated[Optional[str], Header()] = None,
    origin: Annotated[Optional[str], Header()] = None,
    referer: Annotated[Optional[str], Header()] = None,
) -> Tenant:
    """
    Resolve the authenticated tenant from the request credentials.
    Raises AuthError (401) on any mismatch.
    """
    client_ip = request.client.host if request.client else None
    tenant = await TenantService(db).authenticate(
        public_key=x_public_key,
        token=credentials.credentials if credentials else None,
        origin=origin or referer,
        client_ip=client_ip,
    )
    bind_request_context(tenant_id=tenant.id)
    return tenant


def get_notifier(db: Annotated[AsyncSession, Depends(get_db)]) -> TransactionalNotifier:
    return TransactionalNotifier(db, broadcast_hub)


def get_customer_service(db: Annotated[AsyncSession, Depends(get_db)]) -> CustomerService:
    return CustomerService(db)


def get_channel_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[TransactionalNotifier, Depends(get_notifier)],
) -> ChannelService:
    return ChannelService(db, notifier=notifier)


def get_message_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[TransactionalNotifier, Depends(get_notifier)],
) -> MessageService:
    return MessageService(db, notifier=notifier)


def get_tenant_service(db: Annotated[AsyncSession, Depends(get_db)]) -> TenantService:
    return TenantService(db)


CurrentTenant = Annotated[Tenant, Depends(get_current_tenant)]
