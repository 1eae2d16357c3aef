"""Storage, encryption and allocation errors."""

from __future__ import annotations

from note_vault.errors.vault_errors import VaultError


class StorageUnavailable(VaultError):
    """Transient store failure: I/O error, timeout or exhausted CAS retries."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="storage-unavailable", retryable=True)


class StorageCorruption(VaultError):
    """A stored record could not be decrypted or deserialized.

    Never retried automatically; the caller decides whether to invalidate
    the record and resync.
    """

    def __init__(self, message: str, *, key: str = "") -> None:
        super().__init__(message, code="storage-corruption")
        self.key = key


class IndexRegression(VaultError):
    """A deposit index commit would not advance the last used index."""

    def __init__(self, attempted: int, current: int) -> None:
        super().__init__(
            f"deposit index {attempted} is not above last used index {current}",
            code="index-regression",
        )
        self.attempted = attempted
        self.current = current


class EncryptionUnavailable(VaultError):
    """No active session key; reads and writes fail closed."""

    def __init__(self, message: str = "no active session key") -> None:
        super().__init__(message, code="encryption-unavailable")
