# =============================================================================
# Cache Reader - Read Operations Across Both Cache Tiers
# =============================================================================
# Composes the memory tier and the durable store into typed, status-filtered
# views over the per-type cache documents.
# =============================================================================

import asyncio
import logging
import math
from typing import Any, Callable, Optional, Protocol, Sequence

from pydantic import ValidationError

from libs.models import (
    DEFAULT_STATUS_FILTER,
    AssetPage,
    AssetRecord,
    AssetStatus,
    AssetType,
    CacheMetadata,
    CacheSettings,
    MasterCacheSnapshot,
    Pagination,
    StatusFilter,
    matches_status_filter,
)

from .durable_store import DocumentStore
from .errors import CacheError, DocumentNotFound
from .memory_tier import MemoryTier

__all__ = [
    "CacheEntrySource",
    "CacheReader",
    "METADATA_MEMORY_KEY",
    "SORT_FIELDS",
    "parse_type_document",
    "type_memory_key",
]

logger = logging.getLogger(__name__)

METADATA_MEMORY_KEY = "cache-metadata"

# Sort field name -> record accessor
SORT_FIELDS: dict[str, Callable[[AssetRecord], Any]] = {
    "name": lambda record: record.asset_name,
    "lastModified": lambda record: record.last_updated_time,
    "created": lambda record: record.created_time,
    "type": lambda record: record.asset_type.value,
}
DEFAULT_SORT_FIELD = "name"


class CacheEntrySource(Protocol):
    """
    Read-only view of the metadata cache used by the lineage layer.

    The lineage builder depends on this interface only; the cache package
    never imports anything from the lineage package.
    """

    async def get_cache_entries(
        self,
        asset_type: Optional[AssetType] = None,
        status_filter: Optional[StatusFilter] = None,
    ) -> list[AssetRecord]:
        ...

    async def get_asset(self, asset_type: AssetType, asset_id: str) -> Optional[AssetRecord]:
        ...


def parse_type_document(asset_type: AssetType, document: Any) -> list[AssetRecord]:
    """
    Validate a per-type cache document into records.

    Entries that fail validation are skipped with a warning; a document that
    is not a JSON array reads as empty.
    """
    if not isinstance(document, list):
        logger.warning(
            f"Cache document for {asset_type.value} is not a list "
            f"(got {type(document).__name__}); treating as empty"
        )
        return []

    entries: list[AssetRecord] = []
    for raw in document:
        if not isinstance(raw, dict):
            logger.warning(f"Skipping non-object entry in {asset_type.value} cache")
            continue
        if "assetType" not in raw and "asset_type" not in raw:
            raw = {**raw, "assetType": asset_type.value}
        try:
            entries.append(AssetRecord.model_validate(raw))
        except ValidationError as exc:
            asset_id = raw.get("assetId", raw.get("asset_id", "<unknown>"))
            logger.warning(
                f"Skipping invalid {asset_type.value} entry {asset_id}: "
                f"{exc.error_count()} validation error(s)"
            )
    return entries


def type_memory_key(asset_type: AssetType) -> str:
    return f"cache-{asset_type.value}"


def _sort_records(records: list[AssetRecord], sort_by: str, sort_order: str) -> list[AssetRecord]:
    accessor = SORT_FIELDS.get(sort_by, SORT_FIELDS[DEFAULT_SORT_FIELD])
    present = [record for record in records if accessor(record) is not None]
    # Records without the field go last in either direction
    missing = [record for record in records if accessor(record) is None]
    present.sort(key=accessor, reverse=sort_order == "desc")
    return present + missing


def _matches_query(record: AssetRecord, query: str) -> bool:
    """Case-insensitive substring match over name, id, description and ARN."""
    candidates = (
        record.asset_name,
        record.asset_id,
        record.metadata.description,
        record.arn,
    )
    return any(value and query in value.lower() for value in candidates)


def _matches_tags(record: AssetRecord, tags: Sequence[str]) -> bool:
    for tag in record.tags:
        key = str(tag.get("key", ""))
        value = str(tag.get("value", ""))
        if any(search in key or search in value for search in tags):
            return True
    return False


def _paginate(
    records: list[AssetRecord], page: int, page_size: int
) -> AssetPage:
    offset = (page - 1) * page_size
    total_items = len(records)
    return AssetPage(
        assets=records[offset : offset + page_size],
        pagination=Pagination(
            page=page,
            page_size=page_size,
            total_items=total_items,
            total_pages=math.ceil(total_items / page_size),
            has_more=offset + page_size < total_items,
        ),
    )


class CacheReader:
    """
    Typed read access over the two cache tiers.

    Per-type entries are looked up in the memory tier first; on a miss the
    per-type document is read from the durable store and the memory tier is
    populated. A missing document or a failed read yields an empty list for
    that type so one type's outage never fails a whole snapshot.
    """

    def __init__(
        self,
        store: DocumentStore,
        memory: MemoryTier,
        settings: CacheSettings,
    ) -> None:
        self._store = store
        self._memory = memory
        self._settings = settings

    # ------------------------------------------------------------------
    # Per-type entries
    # ------------------------------------------------------------------

    async def get_type_entries(self, asset_type: AssetType) -> list[AssetRecord]:
        """
        Get raw entries of one asset type, without status filtering.

        Args:
            asset_type: Asset type to load

        Returns:
            List of AssetRecord (empty if the document is missing or unreadable)
        """
        memory_key = type_memory_key(asset_type)
        cached = self._memory.get(memory_key)
        if cached is not None:
            return list(cached)

        key = self._settings.type_document_key(asset_type)
        try:
            document = await self._store.get_document(key)
        except DocumentNotFound:
            logger.debug(f"No cache document for {asset_type.value} at {key}")
            return []
        except CacheError as exc:
            logger.warning(f"Failed to get entries for {asset_type.value}: {exc}")
            return []

        entries = parse_type_document(asset_type, document)
        self._memory.set(memory_key, entries)
        return list(entries)

    async def get_cache_entries(
        self,
        asset_type: Optional[AssetType] = None,
        status_filter: Optional[StatusFilter] = None,
    ) -> list[AssetRecord]:
        """
        Get status-filtered entries for one asset type or for all types.

        Args:
            asset_type: Asset type, or None for every type
            status_filter: Status filter (default: ACTIVE)

        Returns:
            Filtered list of AssetRecord
        """
        status_filter = status_filter or DEFAULT_STATUS_FILTER

        if asset_type is not None:
            entries = await self.get_type_entries(asset_type)
            return [
                entry for entry in entries if matches_status_filter(entry.status, status_filter)
            ]

        snapshot = await self.get_master_cache(status_filter=status_filter)
        return snapshot.all_entries()

    async def get_asset(self, asset_type: AssetType, asset_id: str) -> Optional[AssetRecord]:
        """Find one asset by id regardless of its status."""
        entries = await self.get_cache_entries(asset_type, StatusFilter.ALL)
        for entry in entries:
            if entry.asset_id == asset_id:
                return entry
        return None

    # ------------------------------------------------------------------
    # Snapshot views
    # ------------------------------------------------------------------

    async def get_cache_metadata(self) -> CacheMetadata:
        """
        Get cache metadata (format version, last export time, counts).

        Falls back to default metadata if the document is missing or unreadable.
        """
        cached = self._memory.get(METADATA_MEMORY_KEY)
        if cached is not None:
            return cached

        key = self._settings.metadata_document_key
        try:
            document = await self._store.get_document(key)
            metadata = CacheMetadata.model_validate(document)
        except DocumentNotFound:
            logger.debug(f"No cache metadata document at {key}")
            return CacheMetadata()
        except (CacheError, ValidationError) as exc:
            logger.error(f"Failed to get cache metadata: {exc}")
            return CacheMetadata()

        self._memory.set(METADATA_MEMORY_KEY, metadata)
        return metadata

    async def get_master_cache(
        self, status_filter: Optional[StatusFilter] = None
    ) -> MasterCacheSnapshot:
        """
        Build the merged view across all asset types.

        Every type is loaded concurrently; each task fills its own slot so no
        coordination is needed beyond the final join.

        Args:
            status_filter: Status filter applied to every type (default: ACTIVE)
        """
        status_filter = status_filter or DEFAULT_STATUS_FILTER

        async def load(asset_type: AssetType) -> tuple[AssetType, list[AssetRecord]]:
            return asset_type, await self.get_cache_entries(asset_type, status_filter)

        metadata, *loaded = await asyncio.gather(
            self.get_cache_metadata(),
            *(load(asset_type) for asset_type in AssetType),
        )

        entries_by_type = dict(loaded)
        return MasterCacheSnapshot(
            version=metadata.version,
            last_updated=metadata.last_updated,
            counts_by_type={
                asset_type: len(entries) for asset_type, entries in entries_by_type.items()
            },
            entries_by_type=entries_by_type,
        )

    # ------------------------------------------------------------------
    # Search / listing
    # ------------------------------------------------------------------

    async def get_assets_by_type(
        self,
        asset_type: AssetType,
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: str = "asc",
        page: int = 1,
        page_size: Optional[int] = None,
        status_filter: Optional[StatusFilter] = None,
    ) -> AssetPage:
        """
        List one asset type with search, sorting and pagination.

        Args:
            asset_type: Asset type to list
            search: Case-insensitive substring over name, id, description and ARN
            sort_by: One of SORT_FIELDS ("name", "lastModified", "created", "type")
            sort_order: "asc" or "desc"
            page: 1-based page number
            page_size: Items per page (default from settings)
            status_filter: Status filter (default: ACTIVE)

        Returns:
            AssetPage with the requested slice and pagination info
        """
        page = max(page, 1)
        page_size = page_size or self._settings.default_page_size

        records = await self.get_cache_entries(asset_type, status_filter)

        if search:
            query = search.lower()
            records = [record for record in records if _matches_query(record, query)]

        if sort_by:
            records = _sort_records(records, sort_by, sort_order)

        return _paginate(records, page, page_size)

    async def search_assets(
        self,
        query: Optional[str] = None,
        types: Optional[Sequence[AssetType]] = None,
        statuses: Optional[Sequence[AssetStatus]] = None,
        tags: Optional[Sequence[str]] = None,
        sort_by: Optional[str] = None,
        sort_order: str = "asc",
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> AssetPage:
        """
        Search across asset types.

        Without ``statuses`` only non-archived assets are searched; with
        ``statuses`` every asset is considered and only those statuses kept.
        """
        status_filter = StatusFilter.ALL if statuses else DEFAULT_STATUS_FILTER
        snapshot = await self.get_master_cache(status_filter=status_filter)

        records: list[AssetRecord] = []
        for asset_type in types or list(AssetType):
            records.extend(snapshot.entries_by_type.get(asset_type, []))

        if query:
            lowered = query.lower()
            records = [record for record in records if _matches_query(record, lowered)]

        if statuses:
            wanted = {AssetStatus(status) for status in statuses}
            records = [record for record in records if record.status in wanted]

        if tags:
            records = [record for record in records if _matches_tags(record, tags)]

        if sort_by:
            records = _sort_records(records, sort_by, sort_order)

        limit = limit or self._settings.default_page_size
        offset = max(offset, 0)
        total_items = len(records)
        return AssetPage(
            assets=records[offset : offset + limit],
            pagination=Pagination(
                page=offset // limit + 1,
                page_size=limit,
                total_items=total_items,
                total_pages=math.ceil(total_items / limit),
                has_more=offset + limit < total_items,
            ),
        )
