"""Schema creation for the vault tables.

The schema is a single table, so it is created from the ORM metadata on
open rather than through migration scripts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from note_vault.storage.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


async def run_auto_migrate(engine: AsyncEngine) -> None:
    """Create all vault tables that do not exist yet.

    Args:
        engine: The async SQLAlchemy engine to migrate.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)



async def drop_all_tables(engine: AsyncEngine) -> None:
    """Drop all vault tables (test/dev utility only).

    Args:
        engine: The async SQLAlchemy engine.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
