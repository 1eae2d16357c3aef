"""Hashing helpers — privacy-preserving identifiers and storage keys."""

from __future__ import annotations

import hashlib


def sha256(data: bytes) -> bytes:
    """Single SHA-256 hash."""
    return hashlib.sha256(data).digest()


def hash_identifier(value: str) -> str:
    """Hex SHA-256 of a case-folded identifier (public key, pool address)."""
    return sha256(value.lower().encode("utf-8")).hex()


def record_key(kind: str, public_key: str, pool_address: str) -> str:
    """Build the storage key for one ``(public_key, pool_address)`` record.

    Neither identifier appears in clear; only their hashes do.
    """
    return f"{kind}:{hash_identifier(public_key)}:{hash_identifier(pool_address)}"
