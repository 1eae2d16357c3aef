"""Cache hydration as an explicit tagged result.

Readers that render cached notes ask for a :class:`CachedNotesState`
instead of registering load callbacks: ``LOADING`` until the read
finishes, then ``READY`` with the data or ``FAILED`` with the error.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from note_vault.errors.vault_errors import VaultError

if TYPE_CHECKING:
    from note_vault.engine.interfaces import NoteStorage
    from note_vault.notes.models import DiscoveryResult

logger = logging.getLogger(__name__)


class CacheLoadState(enum.StrEnum):
    """Hydration states."""

    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class CachedNotesState:
    """Tagged hydration result.

    ``data`` is only meaningful when READY (None then means "never cached"),
    ``error`` only when FAILED.
    """

    state: CacheLoadState
    data: DiscoveryResult | None = None
    error: VaultError | None = None

    @classmethod
    def loading(cls) -> CachedNotesState:
        return cls(CacheLoadState.LOADING)

    @classmethod
    def ready(cls, data: DiscoveryResult | None) -> CachedNotesState:
        return cls(CacheLoadState.READY, data=data)

    @classmethod
    def failed(cls, error: VaultError) -> CachedNotesState:
        return cls(CacheLoadState.FAILED, error=error)

    @property
    def is_loading(self) -> bool:
        return self.state is CacheLoadState.LOADING

    @property
    def is_ready(self) -> bool:
        return self.state is CacheLoadState.READY

    @property
    def is_failed(self) -> bool:
        return self.state is CacheLoadState.FAILED


async def load_cached_notes(
    storage: NoteStorage,
    public_key: str,
    pool_address: str,
) -> CachedNotesState:
    """Read the cached notes once and tag the outcome.

    Vault errors become ``FAILED``; anything else is a bug and propagates.
    """
    try:
        data = await storage.get_cached_notes(public_key, pool_address)
    except VaultError as exc:
        logger.warning("Cached notes failed to load: %s", exc.code)
        return CachedNotesState.failed(exc)
    return CachedNotesState.ready(data)


class CachedNotesLoader:
    """Runs :func:`load_cached_notes` in a background task.

    Usage::

        loader = CachedNotesLoader(engine, public_key, pool)
        loader.start()
        ...
        state = loader.state          # LOADING until the read finishes
        state = await loader.wait()   # READY or FAILED
    """

    def __init__(self, storage: NoteStorage, public_key: str, pool_address: str) -> None:
        self._storage = storage
        self._public_key = public_key
        self._pool_address = pool_address
        self._state = CachedNotesState.loading()
        self._task: asyncio.Task[CachedNotesState] | None = None

    @property
    def state(self) -> CachedNotesState:
        """Current hydration state."""
        return self._state

    def start(self) -> None:
        """Schedule the read on the running loop (idempotent)."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def wait(self) -> CachedNotesState:
        """Start if needed and return the settled state."""
        self.start()
        assert self._task is not None
        return await self._task

    async def cancel(self) -> None:
        """Abandon an in-flight read; the state stays LOADING."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None

    async def _run(self) -> CachedNotesState:
        self._state = await load_cached_notes(self._storage, self._public_key, self._pool_address)
        return self._state
