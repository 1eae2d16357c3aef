"""Shared test fixtures for the note-vault test suite."""

from __future__ import annotations

import asyncio

import pytest

from note_vault.config.settings import StoreEngine
from note_vault.crypto.cipher import AesGcmCipher
from note_vault.datastore.client import Datastore
from note_vault.session.keyring import SessionKeyring
from note_vault.storage.backend import StoreBackend, StoredBlob
from note_vault.storage.encrypted import EncryptedStore
from note_vault.storage.memory import MemoryBackend
from note_vault.storage.sql import SQLBackend

PUBLIC_KEY = "0x04AbCdEf0123456789"
POOL_ADDRESS = "0xF241d57C6DebAe225c0F2e6eA1529373C9A9C9fB"
SESSION_KEY = bytes(range(32))


class YieldingBackend(MemoryBackend):
    """Memory backend that suspends between a read and the caller's write.

    Lets concurrent writers interleave so compare-and-set conflicts occur.
    """

    async def read(self, namespace: str, key: str) -> StoredBlob | None:
        blob = await super().read(namespace, key)
        await asyncio.sleep(0)
        return blob


class GatedBackend:
    """Wraps a backend and can park the next reader until released.

    ``park_next_read`` arms a one-shot gate: the next ``read`` fetches its
    blob, sets ``parked`` and waits on ``release`` before returning, so a
    test can run other writes between that reader's read and its write.
    """

    def __init__(self, inner: StoreBackend) -> None:
        self.inner = inner
        self._gate: tuple[asyncio.Event, asyncio.Event] | None = None

    def park_next_read(self) -> tuple[asyncio.Event, asyncio.Event]:
        parked, release = asyncio.Event(), asyncio.Event()
        self._gate = (parked, release)
        return parked, release

    async def connect(self) -> None:
        await self.inner.connect()

    async def close(self) -> None:
        await self.inner.close()

    async def read(self, namespace: str, key: str) -> StoredBlob | None:
        blob = await self.inner.read(namespace, key)
        gate, self._gate = self._gate, None
        if gate is not None:
            parked, release = gate
            parked.set()
            await release.wait()
        return blob

    async def compare_and_swap(self, namespace, key, ciphertext, expected_version) -> bool:
        return await self.inner.compare_and_swap(namespace, key, ciphertext, expected_version)

    async def delete(self, namespace: str, key: str) -> bool:
        return await self.inner.delete(namespace, key)

    async def has_namespace(self, namespace: str | None = None) -> bool:
        return await self.inner.has_namespace(namespace)

    async def clear_namespace(self, namespace: str) -> int:
        return await self.inner.clear_namespace(namespace)

    async def clear_all(self) -> int:
        return await self.inner.clear_all()


@pytest.fixture
def app_config():
    """Provide a test AppConfig with an in-memory store and fast key derivation."""
    from note_vault.config.settings import AppConfig, CryptoConfig, MetricsConfig, StoreConfig

    return AppConfig(
        debug=True,
        store=StoreConfig(engine=StoreEngine.MEMORY),
        crypto=CryptoConfig(pbkdf2_iterations=1_000),
        metrics=MetricsConfig(enabled=False),
    )


@pytest.fixture
def sqlite_config(tmp_path):
    """Store config pointing at a throwaway SQLite file."""
    from note_vault.config.settings import StoreConfig

    return StoreConfig(
        engine=StoreEngine.SQLITE,
        dsn=f"sqlite+aiosqlite:///{tmp_path / 'vault.db'}",
    )


@pytest.fixture
def public_key() -> str:
    return PUBLIC_KEY


@pytest.fixture
def pool_address() -> str:
    return POOL_ADDRESS


@pytest.fixture
def keyring() -> SessionKeyring:
    """Keyring unlocked for account ``alice``."""
    ring = SessionKeyring()
    ring.open("alice", AesGcmCipher(SESSION_KEY))
    return ring


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def yielding_backend() -> YieldingBackend:
    return YieldingBackend()


@pytest.fixture
def store(memory_backend, keyring) -> EncryptedStore:
    return EncryptedStore(memory_backend, keyring)


@pytest.fixture
def racy_store(yielding_backend, keyring) -> EncryptedStore:
    """Encrypted store whose reads yield to other tasks."""
    return EncryptedStore(yielding_backend, keyring)


@pytest.fixture(params=["memory", "sqlite"])
async def gated_backend(request, sqlite_config):
    """Gated backend over the in-memory store and over a SQLite file."""
    if request.param == "memory":
        inner: StoreBackend = MemoryBackend()
    else:
        inner = SQLBackend(Datastore(sqlite_config))
    backend = GatedBackend(inner)
    await backend.connect()
    yield backend
    await backend.close()


@pytest.fixture
def gated_store(gated_backend, keyring) -> EncryptedStore:
    return EncryptedStore(gated_backend, keyring)


@pytest.fixture
def gate():
    """Factory wrapping any backend in a :class:`GatedBackend`."""
    return GatedBackend
