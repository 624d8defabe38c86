# =============================================================================
# Data Models Library
# =============================================================================
# Pydantic models and schemas for the asset metadata cache and lineage graph.
# =============================================================================

"""
Data models for the metadata cache.

This library provides:
- Asset: cached asset records, types, statuses and status filters
- Lineage: relationships, lineage entries and the lineage document
- Cache views: master snapshot and pagination
- Configuration models
"""

__version__ = "0.1.0"

# Asset models
from .asset import (
    DEFAULT_STATUS_FILTER,
    LINEAGE_ASSET_TYPES,
    AssetRecord,
    AssetRecordMetadata,
    AssetStatus,
    AssetType,
    LineageHints,
    StatusFilter,
    matches_status_filter,
)

# Lineage models
from .lineage import (
    LineageDocument,
    LineageEntry,
    LineageMetadata,
    Relationship,
    RelationshipKind,
    lineage_key,
)

# Cache view models
from .cache import (
    CACHE_FORMAT_VERSION,
    AssetPage,
    CacheMetadata,
    MasterCacheSnapshot,
    Pagination,
)

# Configuration models
from .config import (
    CacheSettings,
    MinIOSettings,
)

__all__ = [
    # Asset models
    "AssetType",
    "AssetStatus",
    "StatusFilter",
    "DEFAULT_STATUS_FILTER",
    "LINEAGE_ASSET_TYPES",
    "matches_status_filter",
    "LineageHints",
    "AssetRecordMetadata",
    "AssetRecord",
    # Lineage models
    "RelationshipKind",
    "Relationship",
    "LineageMetadata",
    "LineageEntry",
    "LineageDocument",
    "lineage_key",
    # Cache view models
    "CACHE_FORMAT_VERSION",
    "CacheMetadata",
    "MasterCacheSnapshot",
    "Pagination",
    "AssetPage",
    # Configuration models
    "MinIOSettings",
    "CacheSettings",
]
