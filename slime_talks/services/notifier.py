"""
services/notifier.py
--------------------
Realtime fan-out of messaging facts.

The core only emits facts ("message.sent", "typing.started"); delivery is
fire-and-forget and never awaited or retried by the emitting operation.

  BroadcastHub          In-process pub/sub keyed by (tenant, channel uuid).
                        Each SSE listener owns a bounded asyncio.Queue; a
                        full queue drops the fact for that listener only.
  TransactionalNotifier Buffers facts for one request and hands them to the
                        hub after get_db commits; discarded on rollback.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, DefaultDict, Dict, List, Optional, Protocol, Set, Tuple, Union

from sqlalchemy.ext.asyncio import AsyncSession

from slime_talks.core.config import settings
from slime_talks.core.logging import get_logger
from slime_talks.db.session import NOTIFIER_KEY

logger = get_logger(__name__)


@dataclass(frozen=True)
class MessageSentFact:
    tenant_id: int
    channel_uuid: str
    channel_name: str
    channel_type: str
    message_uuid: str
    sender_uuid: str
    sender_name: str
    type: str
    content: str
    created_at: datetime
    metadata: Optional[Dict[str, Any]] = None

    event_name = "message.sent"

    def payload(self) -> Dict[str, Any]:
        return {
            "message": {
                "id": self.message_uuid,
                "type": self.type,
                "content": self.content,
                "metadata": self.metadata,
                "sender": {"id": self.sender_uuid, "name": self.sender_name},
                "channel": {
                    "id": self.channel_uuid,
                    "name": self.channel_name,
                    "type": self.channel_type,
                },
                "created_at": self.created_at.isoformat(),
            }
        }


@dataclass(frozen=True)
class TypingStartedFact:
    tenant_id: int
    channel_uuid: str
    channel_name: str
    customer_uuid: str
    customer_name: str
    started_at: datetime

    event_name = "typing.started"

    def payload(self) -> Dict[str, Any]:
        return {
            "typing": {
                "user": {"id": self.customer_uuid, "name": self.customer_name},
                "channel": {"id": self.channel_uuid, "name": self.channel_name},
                "started_at": self.started_at.isoformat(),
            }
        }


Fact = Union[MessageSentFact, TypingStartedFact]


class Notifier(Protocol):
    def emit(self, fact: Fact) -> None: ...


class BroadcastHub:

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscribers: DefaultDict[Tuple[int, str], Set[asyncio.Queue]] = defaultdict(set)

    def publish(self, fact: Fact) -> None:
        key = (fact.tenant_id, fact.channel_uuid)
        for queue in list(self._subscribers.get(key, ())):
            try:
                queue.put_nowait(fact)
            except asyncio.QueueFull:
                logger.warning(
                    "Listener queue full, fact dropped",
                    channel_uuid=fact.channel_uuid,
                    fact=fact.event_name,
                )

    def subscriber_count(self, tenant_id: int, channel_uuid: str) -> int:
        return len(self._subscribers.get((tenant_id, channel_uuid), ()))

    @asynccontextmanager
    async def subscribe(self, tenant_id: int, channel_uuid: str) -> AsyncIterator[asyncio.Queue]:
        key = (tenant_id, channel_uuid)
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[key].add(queue)
        try:
            yield queue
        finally:
            self._subscribers[key].discard(queue)
            if not self._subscribers[key]:
                del self._subscribers[key]


class TransactionalNotifier:

    def __init__(self, db: AsyncSession, hub: BroadcastHub) -> None:
        self._hub = hub
        self._pending: List[Fact] = []
        db.info[NOTIFIER_KEY] = self

    def emit(self, fact: Fact) -> None:
        self._pending.append(fact)

    def flush(self) -> None:
        pending, self._pending = self._pending, []
        for fact in pending:
            self._hub.publish(fact)


# Shared by every request of this process
broadcast_hub = BroadcastHub(queue_size=settings.LISTENER_QUEUE_SIZE)
