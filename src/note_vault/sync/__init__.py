"""Note sync and cache hydration."""

from note_vault.sync.hydration import (
    CachedNotesLoader,
    CachedNotesState,
    CacheLoadState,
    load_cached_notes,
)
from note_vault.sync.service import NoteMatcher, NoteSyncService, SyncProgress, SyncReport

__all__ = [
    "CacheLoadState",
    "CachedNotesLoader",
    "CachedNotesState",
    "NoteMatcher",
    "NoteSyncService",
    "SyncProgress",
    "SyncReport",
    "load_cached_notes",
]
