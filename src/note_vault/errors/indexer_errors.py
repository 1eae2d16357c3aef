"""Indexer client errors."""

from __future__ import annotations

from note_vault.errors.vault_errors import VaultError


class IndexerError(VaultError):
    """Error from the activity indexer (transport, HTTP or GraphQL)."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message, code="indexer-error", retryable=True)
        self.status_code = status_code
