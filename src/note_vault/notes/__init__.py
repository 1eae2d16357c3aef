"""Note cache and its data models."""

from note_vault.notes.cache import NoteCache
from note_vault.notes.cursor import (
    CursorOrdering,
    LexicographicCursorOrdering,
    PageSequenceOrdering,
)
from note_vault.notes.models import DiscoveryResult, Note, NoteStatus, merge_note_chain

__all__ = [
    "CursorOrdering",
    "DiscoveryResult",
    "LexicographicCursorOrdering",
    "Note",
    "NoteCache",
    "NoteStatus",
    "PageSequenceOrdering",
    "merge_note_chain",
]
