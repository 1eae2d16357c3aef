"""Tests for incremental note sync."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from note_vault.errors.indexer_errors import IndexerError
from note_vault.errors.storage_errors import StorageUnavailable
from note_vault.indexer.models import Activity, ActivityPage, PageInfo, SortOrder
from note_vault.notes.cache import NoteCache
from note_vault.notes.cursor import PageSequenceOrdering
from note_vault.notes.models import Note, NoteStatus
from note_vault.session.keyring import SessionKeyring
from note_vault.storage.encrypted import EncryptedStore
from note_vault.sync.service import NoteSyncService, SyncProgress

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _activity(n: int, kind: str = "DEPOSIT", **extra) -> Activity:
    return Activity(id=f"a{n}", activity_type=kind, pool_id="0xpool", timestamp=f"{n:04d}", **extra)


class FakeSource:
    """Serves a fixed activity list in pages with ``c<index>`` cursors.

    With ``backwards_cursors`` the tokens are ``z<9999 - index>``, so later
    pages have cursors that sort lower as strings.
    """

    def __init__(
        self,
        activities: list[Activity],
        *,
        fail_after: int | None = None,
        backwards_cursors: bool = False,
    ) -> None:
        self.activities = activities
        self.calls: list[tuple[str, int, str | None, SortOrder]] = []
        self._fail_after = fail_after
        self._backwards = backwards_cursors

    def cursor_for(self, index: int) -> str:
        return f"z{9999 - index:04d}" if self._backwards else f"c{index:04d}"

    def _index_of(self, cursor: str) -> int:
        value = int(cursor[1:])
        return 9999 - value if self._backwards else value

    async def fetch_activities(  # noqa: ASYNC910
        self,
        pool_address: str,
        limit: int,
        cursor: str | None = None,
        sort_order: SortOrder = SortOrder.ASC,
    ) -> ActivityPage:
        self.calls.append((pool_address, limit, cursor, sort_order))
        if self._fail_after is not None and len(self.calls) > self._fail_after:
            raise IndexerError("indexer down")
        if sort_order == SortOrder.DESC:
            last = len(self.activities) - 1
            items = self.activities[-1:]
            info = PageInfo(has_next_page=last > 0, end_cursor=self.cursor_for(last))
            return ActivityPage(items, info)
        start = 0 if cursor is None else self._index_of(cursor) + 1
        items = self.activities[start : start + limit]
        if not items:
            return ActivityPage([], PageInfo(has_next_page=False, end_cursor=None))
        end = start + len(items) - 1
        return ActivityPage(
            items,
            PageInfo(
                has_next_page=end < len(self.activities) - 1,
                has_previous_page=start > 0,
                start_cursor=self.cursor_for(start),
                end_cursor=self.cursor_for(end),
            ),
        )


class DepositMatcher:
    """Treats every deposit as ours and marks it spent on a matching withdrawal."""

    def __init__(self) -> None:
        self.known_sizes: list[int] = []

    async def match(  # noqa: ASYNC910
        self, activities: Sequence[Activity], known_notes: Sequence[Note]
    ) -> list[Note]:
        self.known_sizes.append(len(known_notes))
        found: list[Note] = []
        for activity in activities:
            if activity.is_deposit:
                index = int(activity.id[1:])
                found.append(Note(id=activity.id, deposit_index=index))
            elif activity.is_withdrawal and activity.spent_nullifier:
                found.append(
                    Note(id=activity.spent_nullifier, deposit_index=0, status=NoteStatus.SPENT)
                )
        return found


@pytest.fixture
def cache(store: EncryptedStore, keyring: SessionKeyring) -> NoteCache:
    return NoteCache(store, keyring)


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------


class TestSync:
    async def test_full_sync(self, cache: NoteCache, public_key: str, pool_address: str) -> None:
        source = FakeSource([_activity(i) for i in range(5)])
        service = NoteSyncService(cache, source, page_size=2)

        report = await service.sync(public_key, pool_address, DepositMatcher())

        assert report.complete is True
        assert report.pages == 3
        assert report.activities == 5
        assert report.notes_found == 5
        assert report.cursor == "c0004"
        assert [call[2] for call in source.calls] == [None, "c0001", "c0003"]
        cached = await cache.get_cached_notes(public_key, pool_address)
        assert cached is not None
        assert len(cached.note_chain) == 5

    async def test_resumes_from_cached_cursor(
        self, cache: NoteCache, public_key: str, pool_address: str
    ) -> None:
        source = FakeSource([_activity(i) for i in range(4)])
        service = NoteSyncService(cache, source, page_size=2)
        await service.sync(public_key, pool_address, DepositMatcher())

        source.activities.append(_activity(4))
        source.calls.clear()
        matcher = DepositMatcher()
        report = await service.sync(public_key, pool_address, matcher)

        assert source.calls[0][2] == "c0003"
        assert report.activities == 1
        assert report.cursor == "c0004"
        assert matcher.known_sizes == [4]

    async def test_max_pages_pauses(self, cache: NoteCache, public_key: str, pool_address: str) -> None:
        source = FakeSource([_activity(i) for i in range(6)])
        service = NoteSyncService(cache, source, page_size=2)

        first = await service.sync(public_key, pool_address, DepositMatcher(), max_pages=1)
        assert first.complete is False
        assert first.cursor == "c0001"

        second = await service.sync(public_key, pool_address, DepositMatcher())
        assert second.complete is True
        assert second.pages == 2
        assert len(second.result.note_chain) == 6

    async def test_progress_callback(self, cache: NoteCache, public_key: str, pool_address: str) -> None:
        source = FakeSource([_activity(i) for i in range(3)])
        progress: list[SyncProgress] = []
        await NoteSyncService(cache, source, page_size=2).sync(
            public_key, pool_address, DepositMatcher(), on_progress=progress.append
        )
        assert [(p.pages, p.activities, p.cursor) for p in progress] == [
            (1, 2, "c0001"),
            (2, 3, "c0002"),
        ]

    async def test_status_updates_flow_through(
        self, cache: NoteCache, public_key: str, pool_address: str
    ) -> None:
        source = FakeSource([_activity(0), _activity(1, "WITHDRAWAL", spent_nullifier="a0")])
        report = await NoteSyncService(cache, source).sync(public_key, pool_address, DepositMatcher())
        assert report.result is not None
        note = report.result.get_note("a0")
        assert note is not None and note.status is NoteStatus.SPENT

    async def test_interrupted_sync_keeps_persisted_pages(
        self, cache: NoteCache, public_key: str, pool_address: str
    ) -> None:
        source = FakeSource([_activity(i) for i in range(6)], fail_after=2)
        service = NoteSyncService(cache, source, page_size=2)
        with pytest.raises(IndexerError):
            await service.sync(public_key, pool_address, DepositMatcher())

        cached = await cache.get_cached_notes(public_key, pool_address)
        assert cached is not None
        assert cached.last_processed_cursor == "c0003"
        assert len(cached.note_chain) == 4

    async def test_empty_pool(self, cache: NoteCache, public_key: str, pool_address: str) -> None:
        report = await NoteSyncService(cache, FakeSource([])).sync(
            public_key, pool_address, DepositMatcher()
        )
        assert report.complete is True
        assert report.result is None
        assert report.cursor is None

    async def test_missing_end_cursor_with_more_pages(
        self, cache: NoteCache, public_key: str, pool_address: str
    ) -> None:
        class BrokenSource:
            async def fetch_activities(self, pool_address, limit, cursor=None, sort_order=SortOrder.ASC):  # noqa: ASYNC910
                return ActivityPage([_activity(0)], PageInfo(has_next_page=True, end_cursor=None))

        with pytest.raises(IndexerError, match="end cursor"):
            await NoteSyncService(cache, BrokenSource()).sync(
                public_key, pool_address, DepositMatcher()
            )

    async def test_storage_errors_propagate(
        self, keyring: SessionKeyring, public_key: str, pool_address: str
    ) -> None:
        class DownStorage:
            async def get_cached_notes(self, public_key, pool_address):  # noqa: ASYNC910
                raise StorageUnavailable("store offline")

        with pytest.raises(StorageUnavailable):
            await NoteSyncService(DownStorage(), FakeSource([])).sync(
                public_key, pool_address, DepositMatcher()
            )

    def test_rejects_bad_page_size(self, cache: NoteCache) -> None:
        with pytest.raises(ValueError, match="page_size"):
            NoteSyncService(cache, FakeSource([]), page_size=0)

    async def test_page_order_advances_cursors_that_sort_backwards(
        self, store: EncryptedStore, keyring: SessionKeyring, public_key: str, pool_address: str
    ) -> None:
        order = PageSequenceOrdering()
        cache = NoteCache(store, keyring, cursor_ordering=order)
        source = FakeSource([_activity(i) for i in range(5)], backwards_cursors=True)
        service = NoteSyncService(cache, source, page_size=2, page_order=order)

        report = await service.sync(public_key, pool_address, DepositMatcher())
        assert report.cursor == source.cursor_for(4)

        stale = await cache.store_discovered_notes(
            public_key, pool_address, [], source.cursor_for(1)
        )
        assert stale.last_processed_cursor == source.cursor_for(4)

        source.activities.append(_activity(5))
        source.calls.clear()
        report = await service.sync(public_key, pool_address, DepositMatcher())
        assert source.calls[0][2] == source.cursor_for(4)
        assert report.cursor == source.cursor_for(5)


# ---------------------------------------------------------------------------
# initialize_baseline
# ---------------------------------------------------------------------------


class TestInitializeBaseline:
    async def test_stores_newest_cursor(self, cache: NoteCache, public_key: str, pool_address: str) -> None:
        source = FakeSource([_activity(i) for i in range(10)])
        result = await NoteSyncService(cache, source).initialize_baseline(public_key, pool_address)

        assert result.note_chain == []
        assert result.last_processed_cursor == "c0009"
        assert source.calls == [(pool_address, 1, None, SortOrder.DESC)]

    async def test_later_sync_skips_history(
        self, cache: NoteCache, public_key: str, pool_address: str
    ) -> None:
        source = FakeSource([_activity(i) for i in range(10)])
        service = NoteSyncService(cache, source, page_size=5)
        await service.initialize_baseline(public_key, pool_address)

        source.activities.append(_activity(10))
        report = await service.sync(public_key, pool_address, DepositMatcher())
        assert report.activities == 1
        assert [n.id for n in report.result.note_chain] == ["a10"]

    async def test_does_not_rewind_existing_cursor(
        self, cache: NoteCache, public_key: str, pool_address: str
    ) -> None:
        await cache.store_discovered_notes(public_key, pool_address, [], "c9999")
        source = FakeSource([_activity(0)])
        result = await NoteSyncService(cache, source).initialize_baseline(public_key, pool_address)
        assert result.last_processed_cursor == "c9999"
