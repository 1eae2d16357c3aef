"""Store backend factory — memory, SQLite, PostgreSQL."""

from __future__ import annotations

from typing import TYPE_CHECKING

from note_vault.config.settings import StoreEngine

if TYPE_CHECKING:
    from note_vault.config.settings import StoreConfig
    from note_vault.storage.backend import StoreBackend


def create_backend(config: StoreConfig) -> StoreBackend:
    """Build the backend selected by ``config.engine``.

    Args:
        config: Store configuration with engine type and connection params.

    Returns:
        An unconnected backend; call ``connect()`` before use.

    Raises:
        ValueError: If the engine type is not supported.
    """
    engine = StoreEngine(config.engine)

    if engine == StoreEngine.MEMORY:
        from note_vault.storage.memory import MemoryBackend

        return MemoryBackend()

    if engine in (StoreEngine.SQLITE, StoreEngine.POSTGRESQL):
        from note_vault.datastore.client import Datastore
        from note_vault.storage.sql import SQLBackend

        return SQLBackend(Datastore(config))

    msg = f"Unsupported store engine: {engine}"
    raise ValueError(msg)
