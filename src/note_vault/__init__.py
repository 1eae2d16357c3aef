"""Encrypted note cache and deposit-index allocator for privacy-pool wallets."""

__version__ = "0.1.0"
