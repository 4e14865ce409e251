#!/usr/bin/env python3
"""Create all tables directly from the models (local development only)."""

import asyncio

from trocas.database import get_engine
from trocas.models import Base


async def init_db():
    """Create all tables."""
    print("Creating database tables...")

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        print("✓ Tables created")

    print("Database initialization complete! Use `alembic upgrade head` elsewhere.")


if __name__ == "__main__":
    asyncio.run(init_db())
