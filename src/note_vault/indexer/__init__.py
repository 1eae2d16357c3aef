"""Activity indexer client."""

from note_vault.indexer.client import IndexerClient
from note_vault.indexer.models import Activity, ActivityPage, ActivitySource, PageInfo, SortOrder

__all__ = ["Activity", "ActivityPage", "ActivitySource", "IndexerClient", "PageInfo", "SortOrder"]
