"""
api/routes/customers.py
-----------------------
Customer directory endpoints.

POST   /customers                 - Register a customer
GET    /customers                 - Newest customers first (cursor paginated)
GET    /customers/active          - Customers ordered by latest sent message;
                                    with ?sender_email= only that sender's
                                    counterparties
GET    /customers/email/{email}   - Lookup by email
GET    /customers/{customer_id}   - Lookup by id
DELETE /customers/{customer_id}   - Soft delete
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status

from slime_talks.core.config import settings
from slime_talks.dependencies import CurrentTenant, get_customer_service
from slime_talks.schemas.common import DeletedResponse, ListResponse, unix_seconds
from slime_talks.schemas.customer import ActiveCustomerRead, CustomerCreate, CustomerRead
from slime_talks.services.customer_service import CustomerService

router = APIRouter(prefix="/customers", tags=["Customers"])

Service = Annotated[CustomerService, Depends(get_customer_service)]
Limit = Annotated[int, Query(ge=1, le=settings.MAX_PAGE_SIZE, description="Results per page")]
StartingAfter = Annotated[
    Optional[str], Query(description="Id of the last item of the previous page")
]


@router.post(
    "",
    response_model=CustomerRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register a customer",
)
async def create_customer(
    body: CustomerCreate, tenant: CurrentTenant, service: Service
) -> CustomerRead:
    customer = await service.create(tenant, body.name, body.email, body.metadata)
    return CustomerRead.from_model(customer)


@router.get("", response_model=ListResponse[CustomerRead], summary="List customers")
async def list_customers(
    tenant: CurrentTenant,
    service: Service,
    limit: Limit = settings.DEFAULT_PAGE_SIZE,
    starting_after: StartingAfter = None,
) -> ListResponse[CustomerRead]:
    page = await service.list(tenant, limit=limit, cursor=starting_after)
    return ListResponse[CustomerRead](
        data=[CustomerRead.from_model(c) for c in page.data],
        has_more=page.has_more,
        total_count=page.total_count,
    )


@router.get(
    "/active",
    response_model=ListResponse[ActiveCustomerRead],
    summary="List customers by latest message activity",
)
async def list_active_customers(
    tenant: CurrentTenant,
    service: Service,
    sender_email: Optional[str] = None,
    limit: Limit = settings.DEFAULT_PAGE_SIZE,
    starting_after: StartingAfter = None,
) -> ListResponse[ActiveCustomerRead]:
    if sender_email:
        page = await service.list_active_for_sender(
            tenant, sender_email, limit=limit, cursor=starting_after
        )
    else:
        page = await service.list_active(tenant, limit=limit, cursor=starting_after)
    return ListResponse[ActiveCustomerRead](
        data=[
            ActiveCustomerRead(
                **CustomerRead.from_model(item.customer).model_dump(),
                latest_message_at=unix_seconds(item.latest_message_at),
            )
            for item in page.data
        ],
        has_more=page.has_more,
        total_count=page.total_count,
    )


@router.get("/email/{email}", response_model=CustomerRead, summary="Get a customer by email")
async def get_customer_by_email(
    email: str, tenant: CurrentTenant, service: Service
) -> CustomerRead:
    return CustomerRead.from_model(await service.get_by_email(tenant, email))


@router.get("/{customer_id}", response_model=CustomerRead, summary="Get a customer")
async def get_customer(
    customer_id: str, tenant: CurrentTenant, service: Service
) -> CustomerRead:
    return CustomerRead.from_model(await service.get_by_uuid(tenant, customer_id))


@router.delete("/{customer_id}", response_model=DeletedResponse, summary="Delete a customer")
async def delete_customer(
    customer_id: str, tenant: CurrentTenant, service: Service
) -> DeletedResponse:
    """Soft delete: the customer disappears from every lookup and listing."""
    customer = await service.delete(tenant, customer_id)
    return DeletedResponse(object="customer", id=customer.uuid)
