"""
api/routes/channels.py
----------------------
Channel endpoints.

POST /channels                          - Create a general or custom channel
GET  /channels                          - Most recently active first (paginated)
GET  /channels/customer/{customer_id}   - Every channel of one customer
GET  /channels/conversations/{email}    - Channels grouped by counterparty
GET  /channels/{channel_id}             - Lookup by id
GET  /channels/{channel_id}/customers   - Channel members
POST /channels/{channel_id}/typing      - Broadcast a typing indicator
GET  /channels/{channel_id}/events      - Live facts for one channel (SSE)
"""

import asyncio
import json
from typing import Annotated, AsyncIterator, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import StreamingResponse

from slime_talks.core.config import settings
from slime_talks.core.logging import get_logger
from slime_talks.dependencies import CurrentTenant, get_channel_service
from slime_talks.models.channel import ChannelType
from slime_talks.schemas.channel import (
    ChannelCreate,
    ChannelRead,
    ConversationList,
    ConversationRead,
    TypingCreate,
)
from slime_talks.schemas.common import ListResponse, unix_seconds
from slime_talks.schemas.customer import CustomerRead
from slime_talks.services.channel_service import ChannelService
from slime_talks.services.notifier import BroadcastHub, broadcast_hub

logger = get_logger(__name__)

router = APIRouter(prefix="/channels", tags=["Channels"])

Service = Annotated[ChannelService, Depends(get_channel_service)]
Limit = Annotated[int, Query(ge=1, le=settings.MAX_PAGE_SIZE, description="Results per page")]

HEARTBEAT_SECONDS = settings.SSE_HEARTBEAT_SECONDS


def _channel_list(channels, has_more: bool, total_count: int) -> ListResponse[ChannelRead]:
    return ListResponse[ChannelRead](
        data=[ChannelRead.from_model(c) for c in channels],
        has_more=has_more,
        total_count=total_count,
    )


@router.post(
    "",
    response_model=ChannelRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a channel",
)
async def create_channel(body: ChannelCreate, tenant: CurrentTenant, service: Service) -> ChannelRead:
    """
    general: one channel per exact member set; a duplicate is 409.
    custom:  unique by name; an existing name returns the existing channel.
    """
    if body.type == ChannelType.general:
        channel = await service.create_general(tenant, body.customer_uuids)
    else:
        channel = await service.create_custom(tenant, body.name, body.customer_uuids)
    return ChannelRead.from_model(channel)


@router.get("", response_model=ListResponse[ChannelRead], summary="List channels")
async def list_channels(
    tenant: CurrentTenant,
    service: Service,
    limit: Limit = settings.DEFAULT_PAGE_SIZE,
    starting_after: Optional[str] = None,
) -> ListResponse[ChannelRead]:
    page = await service.list(tenant, limit=limit, cursor=starting_after)
    return _channel_list(page.data, page.has_more, page.total_count)


@router.get(
    "/customer/{customer_id}",
    response_model=ListResponse[ChannelRead],
    summary="List every channel of a customer",
)
async def list_customer_channels(
    customer_id: str, tenant: CurrentTenant, service: Service
) -> ListResponse[ChannelRead]:
    page = await service.list_for_customer(tenant, customer_id)
    return _channel_list(page.data, page.has_more, page.total_count)


@router.get(
    "/conversations/{email}",
    response_model=ConversationList,
    summary="List a customer's channels grouped by counterparty",
)
async def list_conversations(email: str, tenant: CurrentTenant, service: Service) -> ConversationList:
    groups = await service.list_grouped_by_recipient(tenant, email)
    return ConversationList(
        data=[
            ConversationRead(
                recipient=CustomerRead.from_model(group.recipient),
                channels=[ChannelRead.from_model(c) for c in group.channels],
                latest_activity=unix_seconds(group.latest_activity),
            )
            for group in groups
        ],
        total_count=len(groups),
    )


@router.get("/{channel_id}", response_model=ChannelRead, summary="Get a channel")
async def get_channel(channel_id: str, tenant: CurrentTenant, service: Service) -> ChannelRead:
    return ChannelRead.from_model(await service.get_by_uuid(tenant, channel_id))


@router.get(
    "/{channel_id}/customers",
    response_model=ListResponse[CustomerRead],
    summary="List channel members",
)
async def list_channel_customers(
    channel_id: str, tenant: CurrentTenant, service: Service
) -> ListResponse[CustomerRead]:
    members = await service.members_of(tenant, channel_id)
    return ListResponse[CustomerRead](
        data=[CustomerRead.from_model(m) for m in members],
        has_more=False,
        total_count=len(members),
    )


@router.post(
    "/{channel_id}/typing",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Signal that a member started typing",
)
async def start_typing(
    channel_id: str, body: TypingCreate, tenant: CurrentTenant, service: Service
) -> dict:
    await service.start_typing(tenant, channel_id, body.customer_uuid)
    return {"object": "typing", "channel_id": channel_id, "customer_id": body.customer_uuid}


# ── Server-Sent Events ────────────────────────────────────────────────────────

def format_sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def sse_events(
    queue: asyncio.Queue,
    is_disconnected: Callable[[], Awaitable[bool]],
    heartbeat: float = HEARTBEAT_SECONDS,
) -> AsyncIterator[str]:
    """
    Drain a hub queue as SSE frames.

    Each fact arrives as:   event: <name>\\ndata: <json>\\n\\n
    Idle connections get a ": keep-alive" comment every ``heartbeat`` seconds.
    """
    while not await is_disconnected():
        try:
            fact = await asyncio.wait_for(queue.get(), timeout=heartbeat)
        except asyncio.TimeoutError:
            yield ": keep-alive\n\n"
            continue
        yield format_sse(fact.event_name, fact.payload())


async def channel_stream(
    hub: BroadcastHub,
    tenant_id: int,
    channel_uuid: str,
    is_disconnected: Callable[[], Awaitable[bool]],
    heartbeat: float = HEARTBEAT_SECONDS,
) -> AsyncIterator[str]:
    """Subscribe one listener to a channel for as long as the client stays connected."""
    async with hub.subscribe(tenant_id, channel_uuid) as queue:
        logger.info(
            "Listener connected",
            channel_uuid=channel_uuid,
            tenant_id=tenant_id,
            listeners=hub.subscriber_count(tenant_id, channel_uuid),
        )
        async for frame in sse_events(queue, is_disconnected, heartbeat):
            yield frame
    logger.info(
        "Listener disconnected",
        channel_uuid=channel_uuid,
        tenant_id=tenant_id,
        listeners=hub.subscriber_count(tenant_id, channel_uuid),
    )


@router.get(
    "/{channel_id}/events",
    summary="Stream channel events (Server-Sent Events)",
    response_class=StreamingResponse,
)
async def stream_channel_events(
    channel_id: str, request: Request, tenant: CurrentTenant, service: Service
):
    """
    Stream message.sent and typing.started facts for one channel.

    How to test with curl:
        curl -N -H "Authorization: Bearer <token>" -H "X-Public-Key: <pk>" \\
          -H "Origin: https://<your-domain>" \\
          "http://localhost:8000/api/v1/channels/<id>/events"
    """
    channel = await service.get_by_uuid(tenant, channel_id)
    tenant_id, channel_uuid = tenant.id, channel.uuid

    return StreamingResponse(
        channel_stream(broadcast_hub, tenant_id, channel_uuid, request.is_disconnected),
        media_type="text/event-stream",
        headers={
            # Proxies and browsers must not buffer the stream
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )
