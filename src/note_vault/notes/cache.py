"""Note cache — encrypted discovery state per ``(public_key, pool_address)``."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from note_vault.errors.storage_errors import StorageCorruption
from note_vault.notes.cursor import LexicographicCursorOrdering
from note_vault.notes.models import DiscoveryResult
from note_vault.utils.crypto import record_key

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from note_vault.notes.cursor import CursorOrdering
    from note_vault.notes.models import Note
    from note_vault.session.keyring import SessionKeyring
    from note_vault.storage.encrypted import EncryptedStore

logger = logging.getLogger(__name__)

NOTES_KIND = "notes"


def decode_discovery_result(payload: bytes, key: str) -> DiscoveryResult:
    """Parse a decrypted payload, reporting malformed data as corruption."""
    try:
        return DiscoveryResult.from_json(payload)
    except ValueError as exc:
        # JSONDecodeError and UnicodeDecodeError are ValueErrors too.
        raise StorageCorruption(f"malformed discovery record: {exc}", key=key) from exc


class NoteCache:
    """Business logic for cached note discovery state.

    - Read the cached chain and cursor
    - Merge newly discovered notes (idempotent, cursor never moves back)
    - Invalidate one key for a hard resync

    Records live in the active session's namespace. The cache performs no
    retries of its own beyond the store's compare-and-set loop.
    """

    def __init__(
        self,
        store: EncryptedStore,
        keyring: SessionKeyring,
        *,
        cursor_ordering: CursorOrdering | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._keyring = keyring
        self._ordering = cursor_ordering or LexicographicCursorOrdering()
        self._clock = clock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_cached_notes(self, public_key: str, pool_address: str) -> DiscoveryResult | None:
        """Read the cached discovery state.

        Args:
            public_key: Account public key.
            pool_address: Privacy pool address.

        Returns:
            The cached result, or None if the key was never populated.

        Raises:
            EncryptionUnavailable: If no session is open.
            StorageCorruption: If the record does not decrypt or parse.
            StorageUnavailable: On store failure.
        """
        namespace = self._keyring.require().account_name
        key = record_key(NOTES_KIND, public_key, pool_address)
        payload = await self._store.get(namespace, key)
        if payload is None:
            return None
        return decode_discovery_result(payload, key)

    async def store_discovered_notes(
        self,
        public_key: str,
        pool_address: str,
        notes: Iterable[Note],
        last_processed_cursor: str | None = None,
    ) -> DiscoveryResult:
        """Merge discovered notes into the cache and persist them.

        Safe to call redundantly and with out-of-order batches from retried
        fetches: notes merge by id and the stored cursor is the later of the
        stored and the given one.

        Args:
            public_key: Account public key.
            pool_address: Privacy pool address.
            notes: Notes found by this fetch (new or with a changed status).
            last_processed_cursor: Cursor of the last page the notes cover.

        Returns:
            The merged result as persisted.
        """
        namespace = self._keyring.require().account_name
        key = record_key(NOTES_KIND, public_key, pool_address)
        batch = list(notes)
        now = self._clock()

        def merge(current: bytes | None) -> bytes:
            if current is None:
                existing = DiscoveryResult()
            else:
                existing = decode_discovery_result(current, key)
            merged = existing.merged(
                batch, last_processed_cursor, ordering=self._ordering, now=now
            )
            return merged.to_json()

        payload = await self._store.update(namespace, key, merge)
        assert payload is not None
        result = decode_discovery_result(payload, key)
        logger.debug(
            "Stored %d notes for %s (chain=%d)", len(batch), key, len(result.note_chain)
        )
        return result

    async def invalidate(self, public_key: str, pool_address: str) -> bool:
        """Remove the cached record for one key only.

        Returns:
            True if a record was removed.
        """
        namespace = self._keyring.require().account_name
        key = record_key(NOTES_KIND, public_key, pool_address)
        removed = await self._store.delete(namespace, key)
        if removed:
            logger.info("Invalidated note cache %s", key)
        return removed
