"""Deposit index allocation."""

from note_vault.deposits.allocator import DepositIndexAllocator
from note_vault.deposits.models import DepositIndexRecord

__all__ = ["DepositIndexAllocator", "DepositIndexRecord"]
