# =============================================================================
# Tiered Metadata Cache
# =============================================================================
# Durable document store + in-process memory tier + typed reader, composed
# by CacheService.
# =============================================================================

from .cache_reader import CacheEntrySource, CacheReader
from .cache_service import CacheService
from .durable_store import DocumentStore, MinIODocumentStore
from .errors import CacheError, DocumentNotFound, InvalidDocumentError, TransientIOError
from .memory_tier import MemoryTier, MemoryTierStats, memory_tier_size

__all__ = [
    "CacheEntrySource",
    "CacheReader",
    "CacheService",
    "DocumentStore",
    "MinIODocumentStore",
    "CacheError",
    "DocumentNotFound",
    "InvalidDocumentError",
    "TransientIOError",
    "MemoryTier",
    "MemoryTierStats",
    "memory_tier_size",
]
