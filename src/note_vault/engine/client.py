"""NoteVaultEngine — the storage façade every other subsystem depends on."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from note_vault.crypto.cipher import AesGcmCipher, derive_session_key
from note_vault.deposits.allocator import DepositIndexAllocator
from note_vault.notes.cache import NoteCache
from note_vault.notes.cursor import PageSequenceOrdering
from note_vault.session.keyring import SessionKeyring
from note_vault.session.manager import SessionLifecycleManager
from note_vault.storage.encrypted import EncryptedStore
from note_vault.storage.factory import create_backend
from note_vault.sync.service import NoteSyncService

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from note_vault.config.settings import AppConfig
    from note_vault.crypto.cipher import Cipher
    from note_vault.deposits.models import DepositIndexRecord
    from note_vault.indexer.client import IndexerClient
    from note_vault.indexer.models import ActivitySource
    from note_vault.metrics.collector import StoreMetrics
    from note_vault.notes.cursor import CursorOrdering
    from note_vault.notes.models import DiscoveryResult, Note
    from note_vault.session.keyring import ActiveSession
    from note_vault.storage.backend import StoreBackend
    from note_vault.sync.service import NoteMatcher, SyncProgress, SyncReport

logger = logging.getLogger(__name__)

# Error messages
_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."
_ERR_NO_SOURCE = "No activity source configured; set indexer.url or pass activity_source."


class NoteVaultEngine:
    """Single entry point composing the note cache, the deposit index
    allocator and the session lifecycle over one encrypted store.

    Implements :class:`~note_vault.engine.interfaces.NoteStorage`,
    :class:`~note_vault.engine.interfaces.DepositIndexStorage` and
    :class:`~note_vault.engine.interfaces.SessionStorage`. Construct it once
    and pass it to whatever needs one of those capabilities.

    Usage::

        engine = NoteVaultEngine(config)
        await engine.initialize()
        try:
            await engine.unlock_with_password("alice", password, user_salt)
            index = await engine.get_next_deposit_index(public_key, pool)
        finally:
            await engine.close()
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        activity_source: ActivitySource | None = None,
        backend: StoreBackend | None = None,
        cursor_ordering: CursorOrdering | None = None,
    ) -> None:
        """Initialize engine with configuration.

        Args:
            config: Application configuration.
            activity_source: Indexer to sync from. When omitted and
                ``indexer.url`` is set, an :class:`IndexerClient` is created
                and owned by the engine.
            backend: Store backend; defaults to the one ``store.engine`` selects.
            cursor_ordering: Ordering for cursors the engine has not seen in
                sequence during a sync (lexicographic by default).
        """
        self._config = config
        self._initialized = False
        self._backend = backend
        self._source = activity_source
        self._owned_indexer: IndexerClient | None = None
        self._cursor_ordering = cursor_ordering
        self._page_order: PageSequenceOrdering | None = None

        self._keyring = SessionKeyring()
        self._metrics: StoreMetrics | None = None
        self._store: EncryptedStore | None = None
        self._notes: NoteCache | None = None
        self._deposits: DepositIndexAllocator | None = None
        self._sessions: SessionLifecycleManager | None = None

    async def initialize(self) -> None:
        """Connect the backend and build the components.

        Raises:
            RuntimeError: If already initialized.
            StorageUnavailable: If the backend cannot be opened.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        if self._backend is None:
            self._backend = create_backend(self._config.store)
        await self._backend.connect()

        if self._config.metrics.enabled:
            from note_vault.metrics.collector import StoreMetrics

            self._metrics = StoreMetrics()

        self._store = EncryptedStore(
            self._backend,
            self._keyring,
            io_timeout=self._config.store.io_timeout,
            max_cas_retries=self._config.store.max_cas_retries,
            metrics=self._metrics,
        )
        self._page_order = PageSequenceOrdering(self._cursor_ordering)
        self._notes = NoteCache(self._store, self._keyring, cursor_ordering=self._page_order)
        self._deposits = DepositIndexAllocator(self._store, self._keyring)
        self._sessions = SessionLifecycleManager(self._keyring, self._store)

        if self._source is None and self._config.indexer.url:
            from note_vault.indexer.client import IndexerClient

            self._owned_indexer = IndexerClient(self._config.indexer)
            await self._owned_indexer.connect()
            self._source = self._owned_indexer

        self._initialized = True
        logger.info("Note vault initialized (store=%s)", self._config.store.engine)

    async def close(self) -> None:
        """Lock the session and release connections.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        self._keyring.lock()

        if self._owned_indexer is not None:
            await self._owned_indexer.close()
            if self._source is self._owned_indexer:
                self._source = None
            self._owned_indexer = None

        self._sessions = None
        self._deposits = None
        self._notes = None
        self._page_order = None
        self._store = None
        self._metrics = None

        if self._backend is not None:
            await self._backend.close()

        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return self._initialized

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def keyring(self) -> SessionKeyring:
        return self._keyring

    @property
    def metrics(self) -> StoreMetrics | None:
        """Get the store metrics (None if disabled or not initialized)."""
        return self._metrics

    @property
    def store(self) -> EncryptedStore:
        """Get the encrypted store.

        Raises:
            RuntimeError: If engine not initialized.
        """
        if self._store is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._store

    @property
    def notes(self) -> NoteCache:
        if self._notes is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._notes

    @property
    def deposits(self) -> DepositIndexAllocator:
        if self._deposits is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._deposits

    @property
    def sessions(self) -> SessionLifecycleManager:
        if self._sessions is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._sessions

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def open_session(self, account_name: str, key: bytes | Cipher) -> ActiveSession:
        """Unlock *account_name* with a raw key or a ready cipher."""
        cipher = AesGcmCipher(key) if isinstance(key, bytes) else key
        session = self._keyring.open(account_name, cipher)
        logger.info("Session opened for %s", session.account_name)
        return session

    async def unlock_with_password(
        self,
        account_name: str,
        password: str,
        user_salt: bytes,
    ) -> ActiveSession:
        """Derive the session key from *password* and open the session.

        A wrong password is not detected here; it shows up as
        ``StorageCorruption`` on the first read of existing records.
        """
        crypto = self._config.crypto
        key = await derive_session_key(
            password,
            account_name,
            user_salt,
            iterations=crypto.pbkdf2_iterations,
            length=crypto.key_length,
            salt_prefix=crypto.salt_prefix,
        )
        return self.open_session(account_name, key)

    def clear_session(self) -> None:
        """Drop the session key; stored records are kept."""
        self._keyring.lock()

    async def clear_all_data(self) -> None:
        """Wipe every record for every account and lock the session."""
        await self.sessions.clear_all_data()

    async def clear_account(self, account_name: str) -> int:
        """Wipe one account's records. Returns the number removed."""
        return await self.sessions.clear_account(account_name)

    async def has_encrypted_data(self, account_name: str | None = None) -> bool:
        return await self.sessions.has_encrypted_data(account_name)

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def get_cached_notes(self, public_key: str, pool_address: str) -> DiscoveryResult | None:
        return await self.notes.get_cached_notes(public_key, pool_address)

    async def store_discovered_notes(
        self,
        public_key: str,
        pool_address: str,
        notes: Iterable[Note],
        last_processed_cursor: str | None = None,
    ) -> DiscoveryResult:
        """Merge discovered notes and keep the allocator ahead of them.

        The allocator is seeded with the highest deposit index in the merged
        chain, so an index already seen on-chain is never handed out again.
        """
        result = await self.notes.store_discovered_notes(
            public_key, pool_address, notes, last_processed_cursor
        )
        if result.last_used_index >= 0:
            await self.deposits.seed(public_key, pool_address, result.last_used_index)
        return result

    async def invalidate(self, public_key: str, pool_address: str) -> bool:
        return await self.notes.invalidate(public_key, pool_address)

    # ------------------------------------------------------------------
    # Deposit indices
    # ------------------------------------------------------------------

    async def get_next_deposit_index(
        self,
        public_key: str,
        pool_address: str,
        *,
        baseline: int | None = None,
    ) -> int:
        return await self.deposits.get_next_deposit_index(
            public_key, pool_address, baseline=baseline
        )

    async def update_last_used_deposit_index(
        self,
        public_key: str,
        pool_address: str,
        deposit_index: int,
    ) -> None:
        await self.deposits.update_last_used_deposit_index(public_key, pool_address, deposit_index)

    async def seed_deposit_index(
        self,
        public_key: str,
        pool_address: str,
        last_used_index: int,
    ) -> DepositIndexRecord:
        return await self.deposits.seed(public_key, pool_address, last_used_index)

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync_notes(
        self,
        public_key: str,
        pool_address: str,
        matcher: NoteMatcher,
        *,
        on_progress: Callable[[SyncProgress], None] | None = None,
        max_pages: int | None = None,
    ) -> SyncReport:
        """Run an incremental sync for one key (see :class:`NoteSyncService`)."""
        return await self._sync_service().sync(
            public_key,
            pool_address,
            matcher,
            on_progress=on_progress,
            max_pages=max_pages,
        )

    async def initialize_sync_baseline(self, public_key: str, pool_address: str) -> DiscoveryResult:
        """Start a new account's sync at the indexer's newest cursor."""
        return await self._sync_service().initialize_baseline(public_key, pool_address)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _sync_service(self) -> NoteSyncService:
        if not self._initialized:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        if self._source is None:
            raise RuntimeError(_ERR_NO_SOURCE)
        return NoteSyncService(
            self,
            self._source,
            self._config.indexer.page_size,
            page_order=self._page_order,
        )
