"""VaultError — base exception class for all note-vault errors."""

from __future__ import annotations


class VaultError(Exception):
    """Base error for all vault operations.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code string.
        retryable: Whether the caller may retry the same operation unchanged.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "vault-error",
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
