"""Encrypted key-value storage and its backends."""

from note_vault.storage.backend import StoreBackend, StoredBlob
from note_vault.storage.encrypted import EncryptedStore
from note_vault.storage.factory import create_backend
from note_vault.storage.memory import MemoryBackend

__all__ = [
    "EncryptedStore",
    "MemoryBackend",
    "StoreBackend",
    "StoredBlob",
    "create_backend",
]
