"""Capability interfaces, one per consumer need.

Deposit flows depend on :class:`DepositIndexStorage`, discovery and UI
readers on :class:`NoteStorage`, logout and account management on
:class:`SessionStorage`. :class:`~note_vault.engine.client.NoteVaultEngine`
implements all three.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

    from note_vault.notes.models import DiscoveryResult, Note


@runtime_checkable
class NoteStorage(Protocol):
    """Read and merge-write cached note discovery state."""

    async def get_cached_notes(
        self, public_key: str, pool_address: str
    ) -> DiscoveryResult | None: ...

    async def store_discovered_notes(
        self,
        public_key: str,
        pool_address: str,
        notes: Iterable[Note],
        last_processed_cursor: str | None = None,
    ) -> DiscoveryResult: ...

    async def invalidate(self, public_key: str, pool_address: str) -> bool: ...


@runtime_checkable
class DepositIndexStorage(Protocol):
    """Peek and commit deposit indices."""

    async def get_next_deposit_index(
        self,
        public_key: str,
        pool_address: str,
        *,
        baseline: int | None = None,
    ) -> int: ...

    async def update_last_used_deposit_index(
        self,
        public_key: str,
        pool_address: str,
        deposit_index: int,
    ) -> None: ...


@runtime_checkable
class SessionStorage(Protocol):
    """Session teardown and stored-data checks."""

    def clear_session(self) -> None: ...

    async def clear_all_data(self) -> None: ...

    async def has_encrypted_data(self, account_name: str | None = None) -> bool: ...
