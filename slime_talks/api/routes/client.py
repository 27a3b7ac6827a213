"""
api/routes/client.py
--------------------
Tenant (client) profile.

GET /client/{client_id} - The authenticated client's own record. Any other
                          id is 404, even when that client exists.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from slime_talks.dependencies import CurrentTenant, get_tenant_service
from slime_talks.schemas.tenant import TenantRead
from slime_talks.services.tenant_service import TenantService

router = APIRouter(tags=["Client"])


@router.get("/client/{client_id}", response_model=TenantRead, summary="Get the client profile")
async def get_client(
    client_id: str,
    tenant: CurrentTenant,
    service: Annotated[TenantService, Depends(get_tenant_service)],
) -> TenantRead:
    return TenantRead.from_model(await service.get_profile(tenant, client_id))
