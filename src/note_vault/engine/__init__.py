"""Storage façade and capability interfaces."""

from note_vault.engine.client import NoteVaultEngine
from note_vault.engine.interfaces import DepositIndexStorage, NoteStorage, SessionStorage

__all__ = ["DepositIndexStorage", "NoteStorage", "NoteVaultEngine", "SessionStorage"]
