"""
api/routes/messages.py
----------------------
Messaging endpoints.

POST /messages                            - Send into a channel
POST /messages/send-to-customer           - Send by email, creating the general
                                            channel between the two if needed
GET  /messages/channel/{channel_id}       - Channel transcript, oldest first
GET  /messages/customer/{customer_id}     - Messages a customer sent, newest first
GET  /messages/between/{email1}/{email2}  - Both customers' messages across every
                                            channel they share, newest first
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status

from slime_talks.core.config import settings
from slime_talks.dependencies import CurrentTenant, get_message_service
from slime_talks.schemas.common import ListResponse
from slime_talks.schemas.message import MessageCreate, MessageRead, MessageToCustomerCreate
from slime_talks.services.message_service import MessageService

router = APIRouter(prefix="/messages", tags=["Messages"])

Service = Annotated[MessageService, Depends(get_message_service)]
Limit = Annotated[int, Query(ge=1, le=settings.MAX_PAGE_SIZE, description="Results per page")]


def _message_list(page) -> ListResponse[MessageRead]:
    return ListResponse[MessageRead](
        data=[MessageRead.from_model(m) for m in page.data],
        has_more=page.has_more,
        total_count=page.total_count,
    )


@router.post(
    "",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message to a channel",
)
async def send_message(body: MessageCreate, tenant: CurrentTenant, service: Service) -> MessageRead:
    message = await service.send(
        tenant,
        channel_uuid=body.channel_uuid,
        sender_uuid=body.sender_uuid,
        type=body.type.value,
        content=body.content,
        metadata=body.metadata,
    )
    return MessageRead.from_model(message)


@router.post(
    "/send-to-customer",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message to a customer by email",
)
async def send_to_customer(
    body: MessageToCustomerCreate, tenant: CurrentTenant, service: Service
) -> MessageRead:
    message = await service.send_to_customer(
        tenant,
        sender_email=body.sender_email,
        recipient_email=body.recipient_email,
        type=body.type.value,
        content=body.content,
        metadata=body.metadata,
    )
    return MessageRead.from_model(message)


@router.get(
    "/channel/{channel_id}",
    response_model=ListResponse[MessageRead],
    summary="List a channel's messages (oldest first)",
)
async def list_channel_messages(
    channel_id: str,
    tenant: CurrentTenant,
    service: Service,
    limit: Limit = settings.DEFAULT_PAGE_SIZE,
    starting_after: Optional[str] = None,
) -> ListResponse[MessageRead]:
    page = await service.list_for_channel(tenant, channel_id, limit=limit, cursor=starting_after)
    return _message_list(page)


@router.get(
    "/customer/{customer_id}",
    response_model=ListResponse[MessageRead],
    summary="List messages sent by a customer (newest first)",
)
async def list_customer_messages(
    customer_id: str,
    tenant: CurrentTenant,
    service: Service,
    limit: Limit = settings.DEFAULT_PAGE_SIZE,
    starting_after: Optional[str] = None,
) -> ListResponse[MessageRead]:
    page = await service.list_for_customer(tenant, customer_id, limit=limit, cursor=starting_after)
    return _message_list(page)


@router.get(
    "/between/{email1}/{email2}",
    response_model=ListResponse[MessageRead],
    summary="List messages exchanged between two customers (newest first)",
)
async def list_messages_between(
    email1: str,
    email2: str,
    tenant: CurrentTenant,
    service: Service,
    limit: Limit = settings.DEFAULT_PAGE_SIZE,
    starting_after: Optional[str] = None,
) -> ListResponse[MessageRead]:
    page = await service.list_between_customers(
        tenant, email1, email2, limit=limit, cursor=starting_after
    )
    return _message_list(page)
