"""
create_tables.py
----------------
One-shot script to create the messaging tables (tenants, customers,
channels, channel_customer, messages) and their partial unique indexes.
Same as ``slime-talks init-db``.

Usage:
    python create_tables.py
"""

import asyncio

from slime_talks.core.config import settings
from slime_talks.db.session import build_engine, init_models


async def create_all_tables() -> None:
    engine = build_engine(settings.DATABASE_URL)
    try:
        await init_models(engine)
    finally:
        await engine.dispose()
    print(f"Tables created on {engine.url.render_as_string(hide_password=True)}")


if __name__ == "__main__":
    asyncio.run(create_all_tables())
