"""Shared fixtures.

Every test gets a fresh in-memory aiosqlite database (one StaticPool
connection, SAVEPOINT support enabled), a deterministic ticking clock and a
notifier that records emitted facts instead of publishing them.
"""

from __future__ import annotations

import os

# Settings are read at import time; this must precede any slime_talks import.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENFORCE_ORIGIN", "true")

from datetime import datetime, timedelta, timezone
from typing import Any, List

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from slime_talks.db import session as session_module
from slime_talks.db.session import enable_sqlite_savepoints, init_models
from slime_talks.services.channel_service import ChannelService
from slime_talks.services.customer_service import CustomerService
from slime_talks.services.message_service import MessageService
from slime_talks.services.tenant_service import TenantService


class TickingClock:
    """Returns strictly increasing UTC datetimes, one ``step`` apart."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        now = self.current
        self.current = now + self.step
        return now


class RecordingNotifier:
    """Notifier test double: keeps every emitted fact in ``facts``."""

    def __init__(self) -> None:
        self.facts: List[Any] = []

    def emit(self, fact: Any) -> None:
        self.facts.append(fact)


# ── Database ──────────────────────────────────────────────────────────────────

@pytest.fixture
async def engine():
    test_engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    enable_sqlite_savepoints(test_engine)
    await init_models(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


# ── Services ──────────────────────────────────────────────────────────────────

@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def customer_service(db, clock) -> CustomerService:
    return CustomerService(db, clock=clock)


@pytest.fixture
def channel_service(db, notifier, clock) -> ChannelService:
    return ChannelService(db, notifier=notifier, clock=clock)


@pytest.fixture
def message_service(db, notifier, clock) -> MessageService:
    return MessageService(db, notifier=notifier, clock=clock)


@pytest.fixture
async def tenant(db):
    created, _ = await TenantService(db).create_tenant("Acme", "acme.io")
    return created


@pytest.fixture
async def other_tenant(db):
    created, _ = await TenantService(db).create_tenant("Globex", "globex.io")
    return created


@pytest.fixture
def make_customer(customer_service, tenant):
    """Factory: ``await make_customer("alice")`` registers alice@acme.io."""

    async def _make(handle: str, owner=None, **kwargs):
        return await customer_service.create(
            owner or tenant, handle.capitalize(), f"{handle}@acme.io", **kwargs
        )

    return _make


# ── HTTP ──────────────────────────────────────────────────────────────────────

async def _register(session_factory, name: str, domain: str, **kwargs):
    async with session_factory() as session:
        created, token = await TenantService(session).create_tenant(name, domain, **kwargs)
        await session.commit()
    return created, token


def _headers(credentials, origin: str) -> dict:
    created, token = credentials
    return {
        "Authorization": f"Bearer {token}",
        "X-Public-Key": created.public_key,
        "Origin": origin,
    }


@pytest.fixture
async def api_tenant(session_factory):
    return await _register(session_factory, "Acme", "acme.io", allowed_subdomains=["app"])


@pytest.fixture
async def other_api_tenant(session_factory):
    return await _register(session_factory, "Globex", "globex.io")


@pytest.fixture
def auth_headers(api_tenant) -> dict:
    return _headers(api_tenant, "https://acme.io")


@pytest.fixture
def other_auth_headers(other_api_tenant) -> dict:
    return _headers(other_api_tenant, "https://globex.io")


@pytest.fixture
async def client(session_factory, monkeypatch):
    """httpx client against the app; get_db opens sessions on the test engine."""
    monkeypatch.setattr(session_module, "AsyncSessionLocal", session_factory)
    from main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
