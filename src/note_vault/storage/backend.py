"""Store backend protocol — versioned opaque blobs with compare-and-set."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Protocol


def new_version() -> str:
    """Return a fresh compare-and-set token.

    Tokens are random, so a key that is deleted and written again never
    gets back a token an earlier reader may still hold.
    """
    return uuid.uuid4().hex


@dataclass(frozen=True)
class StoredBlob:
    """One persisted record as the backend sees it.

    Attributes:
        namespace: Account-name tag used for selective clearing.
        key: Storage key (already hashed, see ``utils.crypto.record_key``).
        ciphertext: Opaque encrypted payload.
        version: Compare-and-set token, replaced on every write.
        updated_at: Epoch seconds of the last write.
    """

    namespace: str
    key: str
    ciphertext: bytes
    version: str
    updated_at: float


class StoreBackend(Protocol):
    """Protocol for store backend implementations.

    ``compare_and_swap`` is the only write primitive. With
    ``expected_version=None`` it inserts only when the key is absent;
    otherwise it replaces the record only while its version still equals
    ``expected_version``. It returns ``False`` on a lost race and never
    partially writes.
    """

    async def connect(self) -> None: ...
    async def close(self) -> None: ...
    async def read(self, namespace: str, key: str) -> StoredBlob | None: ...
    async def compare_and_swap(
        self,
        namespace: str,
        key: str,
        ciphertext: bytes,
        expected_version: str | None,
    ) -> bool: ...
    async def delete(self, namespace: str, key: str) -> bool: ...
    async def has_namespace(self, namespace: str | None = None) -> bool: ...
    async def clear_namespace(self, namespace: str) -> int: ...
    async def clear_all(self) -> int: ...
