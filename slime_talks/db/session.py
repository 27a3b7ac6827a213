"""
db/session.py
-------------
Async SQLAlchemy engine and session factory.

Design decisions:
  - AsyncEngine with asyncpg driver for non-blocking I/O in production;
    aiosqlite for local development and the test-suite.
  - Connection pool sized for typical SaaS workloads on PostgreSQL:
      pool_size=10, max_overflow=20 → max 30 concurrent DB connections.
  - expire_on_commit=False: avoids lazy-load errors after commit in async
    context (attributes are already loaded, no implicit SELECT needed).
  - SQLite connections get the driver-level BEGIN disabled and re-emitted
    by SQLAlchemy, which SAVEPOINT (session.begin_nested) requires.
  - Facts queued on a request's notifier are published only after that
    request's transaction commits.
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from slime_talks.core.config import settings

# session.info key under which a request's TransactionalNotifier is parked
NOTIFIER_KEY = "notifier"


def _engine_kwargs(url: str) -> Dict[str, Any]:
    if make_url(url).get_backend_name() == "sqlite":
        return {"echo": settings.DEBUG}
    return {
        "echo": settings.DEBUG,          # Log SQL in development
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 3600,             # Recycle connections every hour
    }


def enable_sqlite_savepoints(async_engine: AsyncEngine) -> None:
    """Let SQLAlchemy own BEGIN on SQLite so SAVEPOINTs behave."""
    if async_engine.dialect.name != "sqlite":
        return

    @event.listens_for(async_engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str) -> AsyncEngine:
    async_engine = create_async_engine(url, **_engine_kwargs(url))
    enable_sqlite_savepoints(async_engine)
    return async_engine


# ── Engine ────────────────────────────────────────────────────────────────────
engine = build_engine(settings.DATABASE_URL)

# ── Session Factory ───────────────────────────────────────────────────────────
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_models(bind: AsyncEngine = engine) -> None:
    """Create every table known to the ORM metadata (idempotent)."""
    from slime_talks.models import Base  # Imports all models so metadata is populated

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields a database session.
    The session is committed when the request finishes and rolled back on
    exceptions, so every operation is one unit of work.

    Usage:
        @router.get("/example")
        async def handler(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            session.info.pop(NOTIFIER_KEY, None)
            raise
        else:
            notifier = session.info.pop(NOTIFIER_KEY, None)
            if notifier is not None:
                notifier.flush()
        finally:
            await session.close()
