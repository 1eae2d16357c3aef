"""Encrypted key-value store — the single shared mutable resource.

Every payload is sealed with the session cipher before it reaches a
backend, and opened on the way back. Writes are compare-and-set: a new
ciphertext is produced first and then swapped in with one conditional
backend call, so a failed encrypt or a failed write leaves the previous
record untouched.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

from note_vault.errors.storage_errors import StorageCorruption, StorageUnavailable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from note_vault.crypto.cipher import Cipher
    from note_vault.metrics.collector import StoreMetrics
    from note_vault.session.keyring import SessionKeyring
    from note_vault.storage.backend import StoreBackend, StoredBlob

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_IO_TIMEOUT = 10.0
DEFAULT_MAX_CAS_RETRIES = 16


def _associated_data(namespace: str, key: str) -> bytes:
    """Bind a ciphertext to the slot it was written to."""
    return f"{namespace}\x00{key}".encode()


class EncryptedStore:
    """Encrypting, compare-and-set front of a :class:`StoreBackend`.

    Usage::

        store = EncryptedStore(backend, keyring)
        await store.put("alice", "notes:...", b"{...}")
        payload = await store.get("alice", "notes:...")
    """

    def __init__(
        self,
        backend: StoreBackend,
        keyring: SessionKeyring,
        *,
        io_timeout: float = DEFAULT_IO_TIMEOUT,
        max_cas_retries: int = DEFAULT_MAX_CAS_RETRIES,
        metrics: StoreMetrics | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            backend: Connected backend holding the blobs.
            keyring: Source of the session cipher.
            io_timeout: Seconds allowed for a single backend call.
            max_cas_retries: Compare-and-set attempts per write.
            metrics: Optional Prometheus metrics.
        """
        if max_cas_retries < 1:
            msg = "max_cas_retries must be at least 1"
            raise ValueError(msg)
        self._backend = backend
        self._keyring = keyring
        self._io_timeout = io_timeout
        self._max_cas_retries = max_cas_retries
        self._metrics = metrics

    @property
    def backend(self) -> StoreBackend:
        return self._backend

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get(self, namespace: str, key: str) -> bytes | None:
        """Read and decrypt one record.

        Returns:
            The plaintext, or None if the key was never written.

        Raises:
            EncryptionUnavailable: If no session is open.
            StorageCorruption: If the blob does not decrypt.
            StorageUnavailable: On backend failure or timeout.
        """
        cipher = self._keyring.require().cipher
        blob = await self._io(self._backend.read(namespace, key), "read")
        if blob is None:
            return None
        return await self._open(cipher, blob)

    async def put(self, namespace: str, key: str, plaintext: bytes) -> None:
        """Encrypt and store *plaintext*, replacing any previous value."""
        await self.update(namespace, key, lambda _current: plaintext)

    async def update(
        self,
        namespace: str,
        key: str,
        mutate: Callable[[bytes | None], bytes | None],
    ) -> bytes | None:
        """Atomically read-modify-write one record.

        *mutate* receives the current plaintext (None if absent) and returns
        the new plaintext, or None to leave the record as it is. It may be
        called several times when concurrent writers race, so it must be a
        pure function of its argument. Anything it raises propagates and
        nothing is written.

        Returns:
            The plaintext stored after the call.

        Raises:
            EncryptionUnavailable: If no session is open.
            StorageCorruption: If the current blob does not decrypt.
            StorageUnavailable: On backend failure, timeout or exhausted retries.
        """
        cipher = self._keyring.require().cipher
        aad = _associated_data(namespace, key)

        for attempt in range(1, self._max_cas_retries + 1):
            current = await self._io(self._backend.read(namespace, key), "read")
            plaintext = None if current is None else await self._open(cipher, current)

            updated = mutate(plaintext)
            if updated is None or updated == plaintext:
                return plaintext

            ciphertext = await cipher.encrypt(updated, aad)
            expected = None if current is None else current.version
            swapped = await self._io(
                self._backend.compare_and_swap(namespace, key, ciphertext, expected),
                "write",
            )
            if swapped:
                return updated

            logger.debug("CAS conflict on %s/%s (attempt %d)", namespace, key, attempt)
            if self._metrics is not None:
                self._metrics.record_cas_conflict("write")

        logger.warning(
            "Giving up on %s/%s after %d conflicting writes",
            namespace,
            key,
            self._max_cas_retries,
        )
        if self._metrics is not None:
            self._metrics.record_cas_exhausted("write")
        raise StorageUnavailable(
            f"too many concurrent writers on {key}; retry the operation"
        )

    async def delete(self, namespace: str, key: str) -> bool:
        """Remove one record. Returns True if it existed."""
        return await self._io(self._backend.delete(namespace, key), "delete")

    async def has_encrypted_data(self, account_name: str | None = None) -> bool:
        """Check for stored blobs in one namespace, or in any namespace."""
        return await self._io(self._backend.has_namespace(account_name), "exists")

    async def clear_account(self, account_name: str) -> int:
        """Remove exactly the blobs tagged with *account_name*."""
        removed = await self._io(self._backend.clear_namespace(account_name), "clear")
        logger.info("Cleared %d records for namespace %s", removed, account_name)
        return removed

    async def clear_all(self) -> int:
        """Remove every blob in every namespace."""
        removed = await self._io(self._backend.clear_all(), "clear")
        logger.info("Cleared all %d records", removed)
        return removed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _open(self, cipher: Cipher, blob: StoredBlob) -> bytes:
        try:
            return await cipher.decrypt(blob.ciphertext, _associated_data(blob.namespace, blob.key))
        except StorageCorruption as exc:
            logger.warning("Undecryptable record %s/%s", blob.namespace, blob.key)
            if self._metrics is not None:
                self._metrics.record_corruption()
            raise StorageCorruption(exc.message, key=blob.key) from exc

    async def _io(self, call: Awaitable[T], operation: str) -> T:
        """Await one backend call under the I/O timeout."""
        try:
            if self._metrics is None:
                async with asyncio.timeout(self._io_timeout):
                    return await call
            with self._metrics.track(operation):
                async with asyncio.timeout(self._io_timeout):
                    return await call
        except TimeoutError as exc:
            raise StorageUnavailable(
                f"store {operation} timed out after {self._io_timeout}s"
            ) from exc
