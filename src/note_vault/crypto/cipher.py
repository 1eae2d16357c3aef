"""Encryption at rest — the cipher capability and its AES-GCM default.

The store only relies on the :class:`Cipher` protocol; any implementation
that authenticates ``associated_data`` and raises
:class:`~note_vault.errors.StorageCorruption` on a failed open can be used.
"""

from __future__ import annotations

import asyncio
import os
from typing import Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from note_vault.errors.storage_errors import StorageCorruption
from note_vault.utils.crypto import sha256

NONCE_SIZE = 12
USER_SALT_SIZE = 16
_VALID_KEY_SIZES = (16, 24, 32)


class Cipher(Protocol):
    """Authenticated encryption used for every persisted payload."""

    async def encrypt(self, plaintext: bytes, associated_data: bytes) -> bytes: ...
    async def decrypt(self, blob: bytes, associated_data: bytes) -> bytes: ...


class AesGcmCipher:
    """AES-GCM with a random 96-bit nonce prepended to each ciphertext."""

    def __init__(self, key: bytes) -> None:
        if len(key) not in _VALID_KEY_SIZES:
            msg = f"AES-GCM key must be 16, 24 or 32 bytes, got {len(key)}"
            raise ValueError(msg)
        self._aead = AESGCM(key)

    async def encrypt(self, plaintext: bytes, associated_data: bytes) -> bytes:  # noqa: ASYNC910
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, plaintext, associated_data)

    async def decrypt(self, blob: bytes, associated_data: bytes) -> bytes:  # noqa: ASYNC910
        """Open a blob produced by :meth:`encrypt`.

        Raises:
            StorageCorruption: On truncation, tampering or a key mismatch.
        """
        if len(blob) <= NONCE_SIZE:
            raise StorageCorruption("ciphertext is truncated")
        nonce, body = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, body, associated_data)
        except InvalidTag as exc:
            raise StorageCorruption("ciphertext failed authentication") from exc


def generate_user_salt() -> bytes:
    """Random per-user salt mixed into password key derivation."""
    return os.urandom(USER_SALT_SIZE)


def account_salt(account_name: str, prefix: str) -> bytes:
    """Deterministic per-account salt component."""
    return sha256((prefix + account_name.lower().strip()).encode("utf-8"))


def _pbkdf2(password: bytes, salt: bytes, iterations: int, length: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password)


async def derive_session_key(
    password: str,
    account_name: str,
    user_salt: bytes,
    *,
    iterations: int = 310_000,
    length: int = 32,
    salt_prefix: str = "note-vault-salt-",
) -> bytes:
    """Derive a symmetric session key from a password.

    The salt is the account salt followed by *user_salt*. PBKDF2 runs in a
    worker thread so the event loop keeps serving other callers.

    Args:
        password: User password.
        account_name: Account the key belongs to.
        user_salt: Random salt kept by the caller (see :func:`generate_user_salt`).
        iterations: PBKDF2-HMAC-SHA256 iteration count.
        length: Key length in bytes.
        salt_prefix: Prefix of the account salt input.

    Returns:
        Raw key bytes suitable for :class:`AesGcmCipher`.
    """
    if not password:
        msg = "password must not be empty"
        raise ValueError(msg)
    salt = account_salt(account_name, salt_prefix) + user_salt
    return await asyncio.to_thread(
        _pbkdf2, password.encode("utf-8"), salt, iterations, length
    )
