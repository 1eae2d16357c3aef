"""Session keyring — holds the session cipher in memory only.

The key is installed when an account unlocks and dropped on lock; nothing
here is ever persisted.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from note_vault.errors.storage_errors import EncryptionUnavailable

if TYPE_CHECKING:
    from note_vault.crypto.cipher import Cipher


@dataclass(frozen=True)
class ActiveSession:
    """The unlocked account and the cipher bound to its key."""

    account_name: str
    cipher: Cipher = field(repr=False)
    opened_at: float = field(default_factory=time.time)


class SessionKeyring:
    """Volatile holder of the active session."""

    def __init__(self) -> None:
        self._session: ActiveSession | None = None

    @property
    def is_unlocked(self) -> bool:
        """Check if a session key is available."""
        return self._session is not None

    @property
    def account_name(self) -> str | None:
        """Name of the unlocked account, if any."""
        return None if self._session is None else self._session.account_name

    def open(self, account_name: str, cipher: Cipher) -> ActiveSession:
        """Install *cipher* as the session key for *account_name*.

        Replaces any previously open session.
        """
        name = account_name.strip()
        if not name:
            msg = "account name must not be empty"
            raise ValueError(msg)
        self._session = ActiveSession(account_name=name, cipher=cipher)
        return self._session

    def lock(self) -> None:
        """Drop the session key from memory (idempotent)."""
        self._session = None

    def require(self) -> ActiveSession:
        """Return the active session.

        Raises:
            EncryptionUnavailable: If no session is open.
        """
        if self._session is None:
            raise EncryptionUnavailable("session is locked; unlock the account first")
        return self._session
