"""Tests for the NoteVaultEngine façade."""

from __future__ import annotations

from collections.abc import Sequence

import httpx
import pytest

from note_vault.config.settings import AppConfig, IndexerConfig, MetricsConfig
from note_vault.crypto.cipher import AesGcmCipher
from note_vault.engine.client import NoteVaultEngine
from note_vault.engine.interfaces import DepositIndexStorage, NoteStorage, SessionStorage
from note_vault.errors.storage_errors import (
    EncryptionUnavailable,
    IndexRegression,
    StorageCorruption,
)
from note_vault.indexer.models import Activity, ActivityPage, PageInfo, SortOrder
from note_vault.metrics.collector import StoreMetrics
from note_vault.notes.models import Note
from note_vault.storage.memory import MemoryBackend

KEY = bytes(range(32))

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class OnePageSource:
    def __init__(self, items: list[Activity]) -> None:
        self.items = items

    async def fetch_activities(  # noqa: ASYNC910
        self,
        pool_address: str,
        limit: int,
        cursor: str | None = None,
        sort_order: SortOrder = SortOrder.ASC,
    ) -> ActivityPage:
        if cursor is not None:
            return ActivityPage([], PageInfo(end_cursor=None))
        return ActivityPage(self.items, PageInfo(end_cursor="c1"))


class BackwardsCursorSource:
    """Two pages whose cursors sort backwards as strings."""

    async def fetch_activities(  # noqa: ASYNC910
        self,
        pool_address: str,
        limit: int,
        cursor: str | None = None,
        sort_order: SortOrder = SortOrder.ASC,
    ) -> ActivityPage:
        if cursor is None:
            first = [Activity(id="d-0", activity_type="DEPOSIT", pool_id="0xpool")]
            return ActivityPage(first, PageInfo(has_next_page=True, end_cursor="page-b"))
        second = [Activity(id="d-1", activity_type="DEPOSIT", pool_id="0xpool")]
        return ActivityPage(second, PageInfo(has_next_page=False, end_cursor="page-a"))


class AllDeposits:
    async def match(  # noqa: ASYNC910
        self, activities: Sequence[Activity], known_notes: Sequence[Note]
    ) -> list[Note]:
        return [
            Note(id=a.id, deposit_index=int(a.id.split("-")[1]))
            for a in activities
            if a.is_deposit
        ]


@pytest.fixture
async def engine(app_config: AppConfig):
    eng = NoteVaultEngine(app_config)
    await eng.initialize()
    eng.open_session("alice", KEY)
    yield eng
    await eng.close()


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestEngineLifecycle:
    async def test_initialize_and_close(self, app_config: AppConfig) -> None:
        eng = NoteVaultEngine(app_config)
        assert eng.is_initialized is False
        await eng.initialize()
        assert eng.is_initialized is True
        await eng.close()
        assert eng.is_initialized is False

    async def test_double_initialize_raises(self, app_config: AppConfig) -> None:
        eng = NoteVaultEngine(app_config)
        await eng.initialize()
        try:
            with pytest.raises(RuntimeError, match="already initialized"):
                await eng.initialize()
        finally:
            await eng.close()

    async def test_close_idempotent(self, app_config: AppConfig) -> None:
        eng = NoteVaultEngine(app_config)
        await eng.close()
        await eng.initialize()
        await eng.close()
        await eng.close()

    def test_components_require_initialize(self, app_config: AppConfig) -> None:
        eng = NoteVaultEngine(app_config)
        with pytest.raises(RuntimeError, match="not initialized"):
            _ = eng.store
        with pytest.raises(RuntimeError, match="not initialized"):
            _ = eng.notes

    async def test_close_locks_session(self, app_config: AppConfig) -> None:
        eng = NoteVaultEngine(app_config)
        await eng.initialize()
        eng.open_session("alice", KEY)
        await eng.close()
        assert eng.keyring.is_unlocked is False

    async def test_metrics_enabled(self, app_config: AppConfig) -> None:
        config = app_config.model_copy(update={"metrics": MetricsConfig(enabled=True)})
        eng = NoteVaultEngine(config)
        await eng.initialize()
        try:
            assert isinstance(eng.metrics, StoreMetrics)
        finally:
            await eng.close()
        assert eng.metrics is None

    async def test_metrics_disabled(self, engine: NoteVaultEngine) -> None:
        assert engine.metrics is None

    async def test_sqlite_store(self, app_config: AppConfig, sqlite_config) -> None:
        config = app_config.model_copy(update={"store": sqlite_config})
        eng = NoteVaultEngine(config)
        await eng.initialize()
        try:
            eng.open_session("alice", KEY)
            await eng.update_last_used_deposit_index("0xpk", "0xpool", 3)
            assert await eng.get_next_deposit_index("0xpk", "0xpool") == 4
        finally:
            await eng.close()

    async def test_data_survives_restart_with_same_key(self, app_config: AppConfig) -> None:
        backend = MemoryBackend()
        first = NoteVaultEngine(app_config, backend=backend)
        await first.initialize()
        first.open_session("alice", KEY)
        await first.update_last_used_deposit_index("0xpk", "0xpool", 2)
        await first.close()

        second = NoteVaultEngine(app_config, backend=backend)
        await second.initialize()
        try:
            second.open_session("alice", KEY)
            assert await second.get_next_deposit_index("0xpk", "0xpool") == 3
        finally:
            await second.close()


# ---------------------------------------------------------------------------
# Capability interfaces
# ---------------------------------------------------------------------------


class TestEngineInterfaces:
    def test_implements_capabilities(self, app_config: AppConfig) -> None:
        eng = NoteVaultEngine(app_config)
        assert isinstance(eng, NoteStorage)
        assert isinstance(eng, DepositIndexStorage)
        assert isinstance(eng, SessionStorage)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class TestEngineSessions:
    async def test_open_session_with_cipher(self, app_config: AppConfig) -> None:
        eng = NoteVaultEngine(app_config)
        await eng.initialize()
        try:
            session = eng.open_session("bob", AesGcmCipher(KEY))
            assert session.account_name == "bob"
        finally:
            await eng.close()

    async def test_unlock_with_password(self, app_config: AppConfig) -> None:
        eng = NoteVaultEngine(app_config)
        await eng.initialize()
        try:
            salt = b"\x05" * 16
            await eng.unlock_with_password("alice", "correct horse", salt)
            await eng.store_discovered_notes("0xpk", "0xpool", [Note(id="n", deposit_index=0)])
            eng.clear_session()

            with pytest.raises(EncryptionUnavailable):
                await eng.get_cached_notes("0xpk", "0xpool")

            await eng.unlock_with_password("alice", "correct horse", salt)
            assert await eng.get_cached_notes("0xpk", "0xpool") is not None

            await eng.unlock_with_password("alice", "wrong", salt)
            with pytest.raises(StorageCorruption):
                await eng.get_cached_notes("0xpk", "0xpool")
        finally:
            await eng.close()

    async def test_clear_all_data(self, engine: NoteVaultEngine) -> None:
        await engine.store_discovered_notes("0xpk", "0xpool", [Note(id="n", deposit_index=0)])
        await engine.clear_all_data()
        assert await engine.has_encrypted_data() is False
        engine.open_session("alice", KEY)
        assert await engine.get_cached_notes("0xpk", "0xpool") is None

    async def test_clear_account(self, engine: NoteVaultEngine) -> None:
        await engine.update_last_used_deposit_index("0xpk", "0xpool", 1)
        engine.open_session("bob", KEY)
        await engine.update_last_used_deposit_index("0xpk", "0xpool", 5)

        assert await engine.clear_account("alice") == 1
        assert engine.keyring.account_name == "bob"
        assert await engine.has_encrypted_data("alice") is False
        assert await engine.get_next_deposit_index("0xpk", "0xpool") == 6


# ---------------------------------------------------------------------------
# Notes and deposit indices
# ---------------------------------------------------------------------------


class TestEngineStorage:
    async def test_store_seeds_allocator(self, engine: NoteVaultEngine) -> None:
        notes = [Note(id="a", deposit_index=0), Note(id="b", deposit_index=4)]
        result = await engine.store_discovered_notes("0xpk", "0xpool", notes, "c1")
        assert result.last_used_index == 4
        assert await engine.get_next_deposit_index("0xpk", "0xpool") == 5
        with pytest.raises(IndexRegression):
            await engine.update_last_used_deposit_index("0xpk", "0xpool", 4)

    async def test_store_never_lowers_allocator(self, engine: NoteVaultEngine) -> None:
        await engine.update_last_used_deposit_index("0xpk", "0xpool", 9)
        await engine.store_discovered_notes("0xpk", "0xpool", [Note(id="a", deposit_index=2)])
        assert await engine.get_next_deposit_index("0xpk", "0xpool") == 10

    async def test_empty_store_leaves_allocator_unseeded(self, engine: NoteVaultEngine) -> None:
        await engine.store_discovered_notes("0xpk", "0xpool", [], "c1")
        assert await engine.get_next_deposit_index("0xpk", "0xpool", baseline=3) == 4

    async def test_seed_deposit_index(self, engine: NoteVaultEngine) -> None:
        record = await engine.seed_deposit_index("0xpk", "0xpool", 5)
        assert record.last_used_index == 5
        assert await engine.get_next_deposit_index("0xpk", "0xpool") == 6

    async def test_invalidate(self, engine: NoteVaultEngine) -> None:
        await engine.store_discovered_notes("0xpk", "0xpool", [Note(id="a", deposit_index=0)])
        assert await engine.invalidate("0xpk", "0xpool") is True
        assert await engine.get_cached_notes("0xpk", "0xpool") is None
        assert await engine.get_next_deposit_index("0xpk", "0xpool") == 1


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


class TestEngineSync:
    async def test_sync_notes_seeds_allocator(self, app_config: AppConfig) -> None:
        source = OnePageSource(
            [
                Activity(id="d-0", activity_type="DEPOSIT", pool_id="0xpool"),
                Activity(id="d-3", activity_type="DEPOSIT", pool_id="0xpool"),
            ]
        )
        eng = NoteVaultEngine(app_config, activity_source=source)
        await eng.initialize()
        try:
            eng.open_session("alice", KEY)
            report = await eng.sync_notes("0xpk", "0xpool", AllDeposits())
            assert report.notes_found == 2
            assert report.cursor == "c1"
            assert await eng.get_next_deposit_index("0xpk", "0xpool") == 4
        finally:
            await eng.close()

    async def test_initialize_sync_baseline(self, app_config: AppConfig) -> None:
        eng = NoteVaultEngine(app_config, activity_source=OnePageSource([]))
        await eng.initialize()
        try:
            eng.open_session("alice", KEY)
            result = await eng.initialize_sync_baseline("0xpk", "0xpool")
            assert result.note_chain == []
            assert result.last_processed_cursor == "c1"
        finally:
            await eng.close()

    async def test_sync_orders_cursors_by_page_sequence(self, app_config: AppConfig) -> None:
        eng = NoteVaultEngine(app_config, activity_source=BackwardsCursorSource())
        await eng.initialize()
        try:
            eng.open_session("alice", KEY)
            report = await eng.sync_notes("0xpk", "0xpool", AllDeposits())
            assert report.pages == 2
            assert report.cursor == "page-a"
            assert len(report.result.note_chain) == 2
        finally:
            await eng.close()

    async def test_sync_without_source(self, engine: NoteVaultEngine) -> None:
        with pytest.raises(RuntimeError, match="activity source"):
            await engine.sync_notes("0xpk", "0xpool", AllDeposits())

    async def test_owned_indexer_client(self, app_config: AppConfig) -> None:
        config = app_config.model_copy(
            update={"indexer": IndexerConfig(url="https://indexer.test/graphql")}
        )
        eng = NoteVaultEngine(config)
        await eng.initialize()
        try:
            client = eng._source
            assert client is not None
            await client._client.aclose()
            client._client = httpx.AsyncClient(
                transport=httpx.MockTransport(
                    lambda request: httpx.Response(
                        200,
                        json={
                            "data": {
                                "activitys": {
                                    "items": [],
                                    "pageInfo": {"hasNextPage": False, "endCursor": "c7"},
                                }
                            }
                        },
                    )
                )
            )
            eng.open_session("alice", KEY)
            result = await eng.initialize_sync_baseline("0xpk", "0xpool")
            assert result.last_processed_cursor == "c7"
        finally:
            await eng.close()
        assert eng._source is None
