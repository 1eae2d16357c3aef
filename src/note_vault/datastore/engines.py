"""Database engine factory — PostgreSQL, SQLite.

Provides async SQLAlchemy engine creation with support for:
- PostgreSQL (asyncpg driver)
- SQLite (aiosqlite driver), with a busy timeout so concurrent writers
  from other processes wait instead of failing immediately
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

if TYPE_CHECKING:
    from note_vault.config.settings import StoreConfig

_SQLITE_BUSY_TIMEOUT = 5.0


def create_engine(config: StoreConfig) -> AsyncEngine:
    """Create an async SQLAlchemy engine from store configuration.

    Args:
        config: Store configuration with DSN, pool settings, etc.

    Returns:
        A configured ``AsyncEngine`` ready for use.
    """
    kwargs: dict[str, Any] = {
        "echo": config.debug_sql,
    }

    if "sqlite" in config.dsn:
        kwargs["connect_args"] = {"timeout": _SQLITE_BUSY_TIMEOUT}
    else:
        kwargs["pool_size"] = config.max_idle_connections
        kwargs["max_overflow"] = config.max_open_connections - config.max_idle_connections
        kwargs["pool_pre_ping"] = True

    return create_async_engine(config.dsn, **kwargs)
