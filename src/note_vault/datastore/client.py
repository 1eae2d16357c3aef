"""Datastore client — async SQLAlchemy engine & session management.

Owns the engine lifecycle for the SQL store backend:
- Engine lifecycle (create, dispose)
- Async session factory and one-shot transactions
- Table creation for the vault schema
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from note_vault.datastore.engines import create_engine

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from note_vault.config.settings import StoreConfig


class Datastore:
    """Async datastore wrapping a SQLAlchemy engine and session factory.

    Usage::

        ds = Datastore(store_config)
        await ds.open()
        async with ds.transaction() as session:
            ...
        await ds.close()
    """

    def __init__(self, config: StoreConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Return the underlying async engine.

        Raises:
            RuntimeError: If the datastore is not open.
        """
        if self._engine is None:
            msg = "Datastore is not open. Call open() first."
            raise RuntimeError(msg)
        return self._engine

    async def open(self) -> None:
        """Create the engine and the vault tables if they are missing."""
        from note_vault.datastore.migrations import run_auto_migrate

        self._engine = create_engine(self._config)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        await run_auto_migrate(self._engine)

    async def close(self) -> None:
        """Dispose the engine and release all connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    def session(self) -> AsyncSession:
        """Create a new async session from the session factory.

        Raises:
            RuntimeError: If the datastore is not open.
        """
        if self._session_factory is None:
            msg = "Datastore is not open. Call open() first."
            raise RuntimeError(msg)
        return self._session_factory()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session inside a transaction.

        Committed when the block exits normally; rolled back on any error,
        including cancellation.
        """
        async with self.session() as session, session.begin():
            yield session

    @property
    def is_open(self) -> bool:
        """Check if the datastore is open."""
        return self._engine is not None
