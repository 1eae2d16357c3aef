"""In-memory store backend for tests and ephemeral sessions."""

from __future__ import annotations

import time

from note_vault.storage.backend import StoredBlob, new_version


class MemoryBackend:
    """Process-local backend keyed by ``(namespace, key)``.

    No method suspends between reading and writing the dict, so every call
    is atomic with respect to other coroutines on the same event loop.
    """

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], StoredBlob] = {}

    async def connect(self) -> None:  # noqa: ASYNC910
        """Connect (no-op for in-memory)."""

    async def close(self) -> None:  # noqa: ASYNC910
        """Close (records are kept so a reconnect sees the same data)."""

    async def read(self, namespace: str, key: str) -> StoredBlob | None:  # noqa: ASYNC910
        return self._records.get((namespace, key))

    async def compare_and_swap(  # noqa: ASYNC910
        self,
        namespace: str,
        key: str,
        ciphertext: bytes,
        expected_version: str | None,
    ) -> bool:
        """Swap in a new blob if the stored version is still the expected one.

        Args:
            namespace: Account namespace.
            key: Storage key.
            ciphertext: New encrypted payload.
            expected_version: Version read by the caller, None if it saw no record.

        Returns:
            True if the write happened.
        """
        current = self._records.get((namespace, key))
        current_version = None if current is None else current.version
        if current_version != expected_version:
            return False

        self._records[(namespace, key)] = StoredBlob(
            namespace=namespace,
            key=key,
            ciphertext=ciphertext,
            version=new_version(),
            updated_at=time.time(),
        )
        return True

    async def delete(self, namespace: str, key: str) -> bool:  # noqa: ASYNC910
        return self._records.pop((namespace, key), None) is not None

    async def has_namespace(self, namespace: str | None = None) -> bool:  # noqa: ASYNC910
        if namespace is None:
            return bool(self._records)
        return any(ns == namespace for ns, _ in self._records)

    async def clear_namespace(self, namespace: str) -> int:  # noqa: ASYNC910
        doomed = [k for k in self._records if k[0] == namespace]
        for k in doomed:
            del self._records[k]
        return len(doomed)

    async def clear_all(self) -> int:  # noqa: ASYNC910
        count = len(self._records)
        self._records.clear()
        return count
