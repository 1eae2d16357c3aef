"""Session lifecycle — session clearing and full or per-account wipes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from note_vault.session.keyring import SessionKeyring
    from note_vault.storage.encrypted import EncryptedStore

logger = logging.getLogger(__name__)


class SessionLifecycleManager:
    """Coordinates the keyring and the encrypted store on logout and reset."""

    def __init__(self, keyring: SessionKeyring, store: EncryptedStore) -> None:
        self._keyring = keyring
        self._store = store

    def clear_session(self) -> None:
        """Forget the session key; persisted blobs stay as they are.

        Later reads fail with ``EncryptionUnavailable`` until the account is
        unlocked again.
        """
        account = self._keyring.account_name
        self._keyring.lock()
        if account is not None:
            logger.info("Session cleared for %s", account)

    async def clear_all_data(self) -> None:
        """Irreversibly wipe every record across all accounts, then lock.

        Safe to call again after a failure: a retry deletes whatever is left
        and ends with an empty store.

        Raises:
            StorageUnavailable: If the wipe could not complete; retry it.
        """
        try:
            await self._store.clear_all()
        finally:
            self.clear_session()

    async def clear_account(self, account_name: str) -> int:
        """Wipe one account's records without touching any other account.

        Locks the session as well when it belongs to *account_name*.

        Returns:
            Number of records removed.
        """
        removed = await self._store.clear_account(account_name)
        if self._keyring.account_name == account_name:
            self.clear_session()
        return removed

    async def has_encrypted_data(self, account_name: str | None = None) -> bool:
        """Check whether anything is stored for *account_name* (or at all)."""
        return await self._store.has_encrypted_data(account_name)
