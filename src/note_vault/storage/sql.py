"""SQL store backend — async SQLAlchemy over SQLite or PostgreSQL."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from note_vault.errors.storage_errors import StorageUnavailable
from note_vault.storage.backend import StoredBlob, new_version
from note_vault.storage.models import EncryptedRecord

if TYPE_CHECKING:
    from collections.abc import Iterator

    from note_vault.datastore.client import Datastore

logger = logging.getLogger(__name__)


@contextmanager
def _unavailable_on_error(operation: str) -> Iterator[None]:
    """Translate driver and connection errors into ``StorageUnavailable``."""
    try:
        yield
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Store %s failed: %s", operation, exc.__class__.__name__)
        raise StorageUnavailable(f"store {operation} failed: {exc}") from exc


def _as_epoch(value: datetime) -> float:
    # SQLite hands back naive datetimes; they were written as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.timestamp()


class SQLBackend:
    """Backend storing blobs in the ``encrypted_records`` table.

    Compare-and-set is a single conditional statement, so concurrent
    writers in other processes sharing the same database are serialized by
    the database itself.
    """

    def __init__(self, datastore: Datastore) -> None:
        self._datastore = datastore

    async def connect(self) -> None:
        """Open the datastore (creates the table on first use)."""
        if not self._datastore.is_open:
            with _unavailable_on_error("connect"):
                await self._datastore.open()

    async def close(self) -> None:
        await self._datastore.close()

    async def read(self, namespace: str, key: str) -> StoredBlob | None:
        stmt = select(EncryptedRecord).where(
            EncryptedRecord.namespace == namespace,
            EncryptedRecord.record_key == key,
        )
        with _unavailable_on_error("read"):
            async with self._datastore.session() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return StoredBlob(
            namespace=row.namespace,
            key=row.record_key,
            ciphertext=row.ciphertext,
            version=row.version,
            updated_at=_as_epoch(row.updated_at),
        )

    async def compare_and_swap(
        self,
        namespace: str,
        key: str,
        ciphertext: bytes,
        expected_version: str | None,
    ) -> bool:
        """Insert-if-absent or update-if-unchanged in one statement.

        Returns:
            True if this call's write landed.
        """
        now = datetime.now(UTC)
        if expected_version is None:
            stmt = insert(EncryptedRecord).values(
                namespace=namespace,
                record_key=key,
                ciphertext=ciphertext,
                version=new_version(),
                updated_at=now,
            )
            with _unavailable_on_error("insert"):
                try:
                    async with self._datastore.transaction() as session:
                        await session.execute(stmt)
                except IntegrityError:
                    # Someone else inserted the key first.
                    return False
            return True

        stmt = (
            update(EncryptedRecord)
            .where(
                EncryptedRecord.namespace == namespace,
                EncryptedRecord.record_key == key,
                EncryptedRecord.version == expected_version,
            )
            .values(ciphertext=ciphertext, version=new_version(), updated_at=now)
        )
        with _unavailable_on_error("update"):
            async with self._datastore.transaction() as session:
                result = await session.execute(stmt)
                swapped = result.rowcount == 1
        return swapped

    async def delete(self, namespace: str, key: str) -> bool:
        stmt = delete(EncryptedRecord).where(
            EncryptedRecord.namespace == namespace,
            EncryptedRecord.record_key == key,
        )
        with _unavailable_on_error("delete"):
            async with self._datastore.transaction() as session:
                result = await session.execute(stmt)
                removed = result.rowcount
        return removed > 0

    async def has_namespace(self, namespace: str | None = None) -> bool:
        stmt = select(func.count()).select_from(EncryptedRecord)
        if namespace is not None:
            stmt = stmt.where(EncryptedRecord.namespace == namespace)
        with _unavailable_on_error("count"):
            async with self._datastore.session() as session:
                count = (await session.execute(stmt)).scalar_one()
        return count > 0

    async def clear_namespace(self, namespace: str) -> int:
        stmt = delete(EncryptedRecord).where(EncryptedRecord.namespace == namespace)
        with _unavailable_on_error("clear"):
            async with self._datastore.transaction() as session:
                result = await session.execute(stmt)
                removed = result.rowcount
        return removed

    async def clear_all(self) -> int:
        with _unavailable_on_error("clear"):
            async with self._datastore.transaction() as session:
                result = await session.execute(delete(EncryptedRecord))
                removed = result.rowcount
        return removed
