# =============================================================================
# Cache View Models
# =============================================================================
# Views assembled by the cache reader from per-type cache documents.
# These are never persisted as their own documents.
# =============================================================================

from datetime import datetime, timezone

from pydantic import Field

from .asset import AssetRecord, AssetType
from .base import CamelModel

__all__ = [
    "CACHE_FORMAT_VERSION",
    "CacheMetadata",
    "MasterCacheSnapshot",
    "Pagination",
    "AssetPage",
]

CACHE_FORMAT_VERSION = "2.0"


class CacheMetadata(CamelModel):
    """Contents of ``cache/metadata.json`` written by the export pipeline."""

    version: str = CACHE_FORMAT_VERSION
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    asset_counts: dict[str, int] = Field(default_factory=dict)


class MasterCacheSnapshot(CamelModel):
    """
    Merged, status-filtered view across all asset types.

    Attributes:
        version: Cache format version from the cache metadata document
        last_updated: Last export time from the cache metadata document
        counts_by_type: Number of entries per type after filtering
        entries_by_type: Filtered entries per type
    """

    version: str = CACHE_FORMAT_VERSION
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    counts_by_type: dict[AssetType, int] = Field(default_factory=dict)
    entries_by_type: dict[AssetType, list[AssetRecord]] = Field(default_factory=dict)

    def all_entries(self) -> list[AssetRecord]:
        entries: list[AssetRecord] = []
        for records in self.entries_by_type.values():
            entries.extend(records)
        return entries


class Pagination(CamelModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int
    has_more: bool


class AssetPage(CamelModel):
    """One page of search results."""

    assets: list[AssetRecord] = Field(default_factory=list)
    pagination: Pagination
