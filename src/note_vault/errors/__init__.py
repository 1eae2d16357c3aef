"""Vault error hierarchy."""

from note_vault.errors.indexer_errors import IndexerError
from note_vault.errors.storage_errors import (
    EncryptionUnavailable,
    IndexRegression,
    StorageCorruption,
    StorageUnavailable,
)
from note_vault.errors.vault_errors import VaultError

__all__ = [
    "EncryptionUnavailable",
    "IndexRegression",
    "IndexerError",
    "StorageCorruption",
    "StorageUnavailable",
    "VaultError",
]
