"""Deposit index allocator — peek the next index, commit it once used.

Per ``(public_key, pool_address)`` a key is either *unseeded* (no record)
or *ready*. Peeking never writes, so a caller may retry note construction
with the same candidate. Committing is a compare-and-set against the
stored value and rejects anything that does not advance it, which is what
keeps two concurrent deposit flows from finalising the same index.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from note_vault.deposits.models import DepositIndexRecord
from note_vault.errors.storage_errors import IndexRegression, StorageCorruption
from note_vault.utils.crypto import record_key

if TYPE_CHECKING:
    from collections.abc import Callable

    from note_vault.session.keyring import SessionKeyring
    from note_vault.storage.encrypted import EncryptedStore

logger = logging.getLogger(__name__)

DEPOSIT_KIND = "deposit"
UNSEEDED_BASELINE = -1


def _decode(payload: bytes, key: str) -> DepositIndexRecord:
    try:
        return DepositIndexRecord.from_json(payload)
    except ValueError as exc:
        raise StorageCorruption(f"malformed deposit index record: {exc}", key=key) from exc


class DepositIndexAllocator:
    """Allocates deposit indices without ever committing one twice."""

    def __init__(
        self,
        store: EncryptedStore,
        keyring: SessionKeyring,
        *,
        default_baseline: int = UNSEEDED_BASELINE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the allocator.

        Args:
            store: Encrypted store holding the records.
            keyring: Source of the active account namespace.
            default_baseline: Last used index assumed for unseeded keys
                (-1 makes the first index 0).
            clock: Time source for ``updated_at``.
        """
        if default_baseline < UNSEEDED_BASELINE:
            msg = f"default_baseline must be >= {UNSEEDED_BASELINE}"
            raise ValueError(msg)
        self._store = store
        self._keyring = keyring
        self._default_baseline = default_baseline
        self._clock = clock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_record(self, public_key: str, pool_address: str) -> DepositIndexRecord | None:
        """Read the stored record, None while the key is unseeded."""
        namespace = self._keyring.require().account_name
        key = record_key(DEPOSIT_KIND, public_key, pool_address)
        payload = await self._store.get(namespace, key)
        return None if payload is None else _decode(payload, key)

    async def get_next_deposit_index(
        self,
        public_key: str,
        pool_address: str,
        *,
        baseline: int | None = None,
    ) -> int:
        """Return the next candidate index without reserving it.

        Args:
            public_key: Account public key.
            pool_address: Privacy pool address.
            baseline: Last used index to assume if the key is unseeded.

        Returns:
            ``last_used_index + 1``.
        """
        record = await self.get_record(public_key, pool_address)
        if record is not None:
            return record.next_index
        start = self._default_baseline if baseline is None else baseline
        return start + 1

    async def seed(
        self,
        public_key: str,
        pool_address: str,
        last_used_index: int,
    ) -> DepositIndexRecord:
        """Make sure the stored last used index is at least *last_used_index*.

        Creates the record for an unseeded key. For a ready key it raises the
        stored value when the baseline is higher and otherwise leaves it
        alone, so seeding never regresses and never fails on a stale baseline.
        """
        if last_used_index < UNSEEDED_BASELINE:
            msg = f"baseline must be >= {UNSEEDED_BASELINE}, got {last_used_index}"
            raise ValueError(msg)
        key = record_key(DEPOSIT_KIND, public_key, pool_address)
        now = self._clock()

        def raise_to_baseline(current: bytes | None) -> bytes | None:
            if current is not None:
                record = _decode(current, key)
                if record.last_used_index >= last_used_index:
                    return None
            return DepositIndexRecord(
                public_key=public_key,
                pool_address=pool_address,
                last_used_index=last_used_index,
                updated_at=now,
            ).to_json()

        return await self._write(key, raise_to_baseline)

    async def update_last_used_deposit_index(
        self,
        public_key: str,
        pool_address: str,
        deposit_index: int,
    ) -> DepositIndexRecord:
        """Commit *deposit_index* as used.

        Gaps are accepted; anything at or below the stored value is not.

        Raises:
            IndexRegression: If ``deposit_index <= last_used_index``.
            ValueError: If *deposit_index* is negative.
        """
        if isinstance(deposit_index, bool) or not isinstance(deposit_index, int):
            msg = f"deposit index must be an integer, got {deposit_index!r}"
            raise TypeError(msg)
        if deposit_index < 0:
            msg = f"deposit index must be non-negative, got {deposit_index}"
            raise ValueError(msg)
        key = record_key(DEPOSIT_KIND, public_key, pool_address)
        now = self._clock()

        def commit(current: bytes | None) -> bytes:
            last_used = (
                self._default_baseline if current is None else _decode(current, key).last_used_index
            )
            if deposit_index <= last_used:
                raise IndexRegression(deposit_index, last_used)
            return DepositIndexRecord(
                public_key=public_key,
                pool_address=pool_address,
                last_used_index=deposit_index,
                updated_at=now,
            ).to_json()

        try:
            record = await self._write(key, commit)
        except IndexRegression as exc:
            logger.warning(
                "Rejected deposit index %d for %s (last used %d)", exc.attempted, key, exc.current
            )
            raise
        logger.debug("Committed deposit index %d for %s", deposit_index, key)
        return record

    async def clear(self, public_key: str, pool_address: str) -> bool:
        """Forget the record for one key, returning it to the unseeded state."""
        namespace = self._keyring.require().account_name
        key = record_key(DEPOSIT_KIND, public_key, pool_address)
        return await self._store.delete(namespace, key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _write(
        self,
        key: str,
        mutate: Callable[[bytes | None], bytes | None],
    ) -> DepositIndexRecord:
        namespace = self._keyring.require().account_name
        payload = await self._store.update(namespace, key, mutate)
        assert payload is not None
        return _decode(payload, key)
