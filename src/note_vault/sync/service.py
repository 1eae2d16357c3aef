"""Incremental note sync against a paginated activity source.

The sync walks a pool's activities in ascending order starting after the
cached cursor, hands each page to the caller's :class:`NoteMatcher` and
persists the page (found notes plus the page's end cursor) before asking
for the next one. A sync that is interrupted for any reason resumes from
the last persisted page on the next call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from note_vault.errors.indexer_errors import IndexerError
from note_vault.indexer.models import SortOrder

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from note_vault.engine.interfaces import NoteStorage
    from note_vault.indexer.models import Activity, ActivitySource
    from note_vault.notes.cursor import PageSequenceOrdering
    from note_vault.notes.models import DiscoveryResult, Note

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


class NoteMatcher(Protocol):
    """Recognises the account's notes among a page of pool activities.

    Implementations derive the account's commitments and nullifiers; this
    package only moves pages and persists what the matcher returns.
    """

    async def match(
        self,
        activities: Sequence[Activity],
        known_notes: Sequence[Note],
    ) -> Sequence[Note]:
        """Return notes that are new, or whose status changed, in *activities*."""
        ...


@dataclass(frozen=True)
class SyncProgress:
    """Running totals reported after each persisted page."""

    pages: int
    activities: int
    notes_found: int
    cursor: str | None


@dataclass(frozen=True)
class SyncReport:
    """Outcome of one :meth:`NoteSyncService.sync` call.

    Attributes:
        result: Cached state after the sync (None if nothing was ever stored).
        pages: Pages fetched by this call.
        activities: Activities scanned by this call.
        notes_found: Notes the matcher reported.
        complete: False when ``max_pages`` stopped the sync early.
    """

    result: DiscoveryResult | None
    pages: int = 0
    activities: int = 0
    notes_found: int = 0
    complete: bool = True

    @property
    def cursor(self) -> str | None:
        return None if self.result is None else self.result.last_processed_cursor


class NoteSyncService:
    """Pages through activities and persists matched notes.

    When *page_order* is given, every fetched page is recorded in it before
    the page is stored, so the note storage orders this sync's cursors by
    the sequence the pages came in rather than by their spelling.
    """

    def __init__(
        self,
        storage: NoteStorage,
        source: ActivitySource,
        page_size: int = DEFAULT_PAGE_SIZE,
        *,
        page_order: PageSequenceOrdering | None = None,
    ) -> None:
        if page_size < 1:
            msg = "page_size must be at least 1"
            raise ValueError(msg)
        self._storage = storage
        self._source = source
        self._page_size = page_size
        self._page_order = page_order

    async def sync(
        self,
        public_key: str,
        pool_address: str,
        matcher: NoteMatcher,
        *,
        on_progress: Callable[[SyncProgress], None] | None = None,
        max_pages: int | None = None,
    ) -> SyncReport:
        """Fetch every page after the cached cursor and persist matches.

        Args:
            public_key: Account public key.
            pool_address: Privacy pool address.
            matcher: Caller-supplied note recogniser.
            on_progress: Called after each page is persisted.
            max_pages: Stop after this many pages (the next call resumes).

        Returns:
            SyncReport with the cached state after the last persisted page.

        Raises:
            IndexerError: If a page cannot be fetched.
            StorageUnavailable, StorageCorruption, EncryptionUnavailable:
                From the note storage.
        """
        result = await self._storage.get_cached_notes(public_key, pool_address)
        cursor = None if result is None else result.last_processed_cursor
        known: list[Note] = [] if result is None else list(result.note_chain)
        pages = activities = notes_found = 0

        while max_pages is None or pages < max_pages:
            page = await self._source.fetch_activities(
                pool_address, self._page_size, cursor, SortOrder.ASC
            )
            pages += 1
            activities += len(page.items)

            found = list(await matcher.match(page.items, known)) if page.items else []
            notes_found += len(found)
            end_cursor = page.page_info.end_cursor or cursor
            if end_cursor is not None and self._page_order is not None:
                self._page_order.record(cursor, end_cursor)
            if found or end_cursor != cursor:
                result = await self._storage.store_discovered_notes(
                    public_key, pool_address, found, end_cursor
                )
                known = list(result.note_chain)
            cursor = end_cursor

            logger.debug(
                "Sync page %d: %d activities, %d notes, cursor=%s",
                pages,
                len(page.items),
                len(found),
                cursor,
            )
            if on_progress is not None:
                on_progress(SyncProgress(pages, activities, notes_found, cursor))

            if not page.page_info.has_next_page:
                return SyncReport(result, pages, activities, notes_found, complete=True)
            if page.page_info.end_cursor is None:
                msg = "indexer reported another page without an end cursor"
                raise IndexerError(msg)

        logger.info("Sync paused after %d pages at cursor %s", pages, cursor)
        return SyncReport(result, pages, activities, notes_found, complete=False)

    async def initialize_baseline(self, public_key: str, pool_address: str) -> DiscoveryResult:
        """Start a brand-new account at the indexer's newest position.

        Stores an empty note chain whose cursor is the newest activity's, so
        later syncs skip the pool's history.
        """
        page = await self._source.fetch_activities(pool_address, 1, None, SortOrder.DESC)
        cursor = page.page_info.end_cursor
        result = await self._storage.store_discovered_notes(public_key, pool_address, [], cursor)
        logger.info("Initialized sync baseline at cursor %s", cursor)
        return result
