# =============================================================================
# Cache Service - Metadata Cache Composition Root
# =============================================================================
# Owns the durable store, the memory tier and the reader. Constructed once
# at process start and handed to whichever component needs the cache;
# released with close().
# =============================================================================

import asyncio
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from libs.models import (
    AssetPage,
    AssetRecord,
    AssetStatus,
    AssetType,
    CacheMetadata,
    CacheSettings,
    MasterCacheSnapshot,
    MinIOSettings,
    StatusFilter,
)

from .cache_reader import (
    METADATA_MEMORY_KEY,
    CacheReader,
    parse_type_document,
    type_memory_key,
)
from .durable_store import DocumentStore, MinIODocumentStore
from .errors import CacheError, DocumentNotFound
from .memory_tier import MemoryTier, memory_tier_size

__all__ = ["CacheService"]

logger = logging.getLogger(__name__)


class CacheService:
    """
    Tiered metadata cache: in-process memory tier over a durable document store.

    Read operations delegate to CacheReader. Mutations rewrite whole per-type
    documents; read-modify-write cycles on one type are serialized by a
    per-type lock so concurrent updates never lose each other's changes.

    Example:
        >>> service = CacheService.from_settings(MinIOSettings(), CacheSettings())
        >>> snapshot = await service.get_master_cache()
        >>> service.close()
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
        self._reader = CacheReader(store, memory, settings)
        self._type_locks = {asset_type: asyncio.Lock() for asset_type in AssetType}
        self._metadata_lock = asyncio.Lock()
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        minio_settings: MinIOSettings,
        cache_settings: CacheSettings,
    ) -> "CacheService":
        """Build a service backed by MinIO, with the memory tier sized to the host."""
        store = MinIODocumentStore.from_settings(minio_settings)
        memory = MemoryTier(
            max_entries=memory_tier_size(cache_settings.host_memory_mb),
            ttl_seconds=cache_settings.memory_ttl_seconds,
        )
        logger.info(
            f"Cache service created for bucket '{store.bucket}' "
            f"(memory tier: {memory_tier_size(cache_settings.host_memory_mb)} entries, "
            f"ttl {cache_settings.memory_ttl_seconds}s)"
        )
        return cls(store, memory, cache_settings)

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    @property
    def reader(self) -> CacheReader:
        return self._reader

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the memory tier. The service must not be used afterwards."""
        if self._closed:
            return
        self._memory.destroy()
        self._closed = True
        logger.debug("Cache service closed")

    # =========================================================================
    # Read operations (delegated)
    # =========================================================================

    async def get_type_entries(self, asset_type: AssetType) -> list[AssetRecord]:
        return await self._reader.get_type_entries(asset_type)

    async def get_cache_entries(
        self,
        asset_type: Optional[AssetType] = None,
        status_filter: Optional[StatusFilter] = None,
    ) -> list[AssetRecord]:
        return await self._reader.get_cache_entries(asset_type, status_filter)

    async def get_master_cache(
        self, status_filter: Optional[StatusFilter] = None
    ) -> MasterCacheSnapshot:
        return await self._reader.get_master_cache(status_filter)

    async def get_assets_by_type(self, asset_type: AssetType, **options: Any) -> AssetPage:
        return await self._reader.get_assets_by_type(asset_type, **options)

    async def get_asset(self, asset_type: AssetType, asset_id: str) -> Optional[AssetRecord]:
        return await self._reader.get_asset(asset_type, asset_id)

    async def get_cache_metadata(self) -> CacheMetadata:
        return await self._reader.get_cache_metadata()

    async def search_assets(self, **options: Any) -> AssetPage:
        return await self._reader.search_assets(**options)

    async def get_archived_asset_counts(self) -> dict[str, int]:
        """
        Count archived assets per type.

        Returns:
            Dict keyed by asset type value plus "total"
        """
        counts = {asset_type.value: 0 for asset_type in AssetType}
        archived = await self._reader.get_cache_entries(status_filter=StatusFilter.ARCHIVED)
        for record in archived:
            counts[record.asset_type.value] += 1
        counts["total"] = len(archived)
        return counts

    async def get_cache_stats(self) -> dict[str, Any]:
        """
        Report memory tier statistics and the number of durable cache documents.

        The durable section is None when the store cannot be listed.
        """
        memory_stats = self._memory.stats()
        stats: dict[str, Any] = {
            "memory": {**asdict(memory_stats), "hit_rate": memory_stats.hit_rate},
            "durable": None,
        }
        try:
            keys = await self._store.list_keys(f"{self._settings.cache_prefix.strip('/')}/")
        except CacheError as exc:
            logger.error(f"Failed to get cache stats: {exc}")
            return stats

        stats["durable"] = {"prefix": self._settings.cache_prefix, "documents": len(keys)}
        return stats

    # =========================================================================
    # Generic keyed documents
    # =========================================================================

    async def get_document(self, key: str) -> Optional[Any]:
        """
        Get any JSON document by key through both tiers.

        Returns:
            The document, or None if it was never written or could not be read
        """
        cached = self._memory.get(key)
        if cached is not None:
            return cached

        try:
            document = await self._store.get_document(key)
        except DocumentNotFound:
            return None
        except CacheError as exc:
            logger.error(f"Failed to get cache document '{key}': {exc}")
            return None

        self._memory.set(key, document)
        return document

    async def put_document(self, key: str, document: Any) -> None:
        """
        Write any JSON document to the durable store and the memory tier.

        Raises:
            TransientIOError: If the durable write failed (the memory tier is untouched)
        """
        await self._store.put_document(key, document)
        self._memory.set(key, document)

    async def list_keys(self, prefix: str) -> list[str]:
        """List durable document keys under a prefix; empty on failure."""
        try:
            return await self._store.list_keys(prefix)
        except CacheError as exc:
            logger.error(f"Failed to list cache keys under '{prefix}': {exc}")
            return []

    def clear_memory_cache(self) -> None:
        """Drop every memory tier entry; the next reads go to the durable store."""
        size = len(self._memory)
        self._memory.clear()
        logger.info(f"Cleared memory cache ({size} entries)")

    # =========================================================================
    # Per-type document mutations
    # =========================================================================

    async def save_type_entries(
        self, asset_type: AssetType, entries: Sequence[AssetRecord]
    ) -> None:
        """
        Replace the whole per-type document.

        Raises:
            CacheError: If the durable write failed
        """
        async with self._type_locks[asset_type]:
            await self._write_type_entries(asset_type, list(entries))

    async def upsert_asset(self, record: AssetRecord) -> AssetRecord:
        """
        Insert or replace one asset in its per-type document.

        Any existing entries with the same id are replaced, which also removes
        duplicates left behind by earlier exports.

        Raises:
            CacheError: If the per-type document could not be read or written
        """
        async with self._type_locks[record.asset_type]:
            entries = await self._read_type_entries_for_update(record.asset_type)
            others = [entry for entry in entries if entry.asset_id != record.asset_id]
            replaced = len(entries) - len(others)
            if replaced > 1:
                logger.info(
                    f"Removing {replaced - 1} duplicate cache entries for "
                    f"{record.asset_type.value}/{record.asset_id}"
                )
            await self._write_type_entries(record.asset_type, [*others, record])
        return record

    async def update_asset(
        self,
        asset_type: AssetType,
        asset_id: str,
        updates: dict[str, Any],
    ) -> AssetRecord:
        """
        Merge field updates (camelCase or snake_case keys) into one asset.

        The most recently updated duplicate is used as the base. An unknown
        asset is created from the updates.

        Raises:
            CacheError: If the per-type document could not be read or written
            pydantic.ValidationError: If the merged record is invalid
        """
        aliases = {name: field.alias or name for name, field in AssetRecord.model_fields.items()}
        updates = {aliases.get(key, key): value for key, value in updates.items()}

        async with self._type_locks[asset_type]:
            entries = await self._read_type_entries_for_update(asset_type)
            existing = [entry for entry in entries if entry.asset_id == asset_id]
            others = [entry for entry in entries if entry.asset_id != asset_id]

            if existing:
                base = max(
                    existing,
                    key=lambda entry: entry.last_updated_time
                    or datetime.min.replace(tzinfo=timezone.utc),
                )
                merged = {**base.model_dump(by_alias=True), **updates}
            else:
                merged = {"assetId": asset_id, "assetType": asset_type.value, **updates}

            record = AssetRecord.model_validate(merged)
            await self._write_type_entries(asset_type, [*others, record])
        return record

    async def remove_asset(self, asset_type: AssetType, asset_id: str) -> bool:
        """
        Remove one asset from its per-type document.

        Returns:
            True if the asset was present and removed

        Raises:
            CacheError: If the per-type document could not be read or written
        """
        async with self._type_locks[asset_type]:
            entries = await self._read_type_entries_for_update(asset_type)
            remaining = [entry for entry in entries if entry.asset_id != asset_id]
            if len(remaining) == len(entries):
                return False
            await self._write_type_entries(asset_type, remaining)

        logger.debug(f"Removed {asset_type.value} {asset_id} from cache")
        return True

    async def mark_status(
        self,
        asset_type: AssetType,
        asset_id: str,
        status: AssetStatus,
    ) -> Optional[AssetRecord]:
        """
        Set the lifecycle status of a cached asset (used by the archiving flow).

        Returns:
            The updated record, or None if the asset is not cached
        """
        async with self._type_locks[asset_type]:
            entries = await self._read_type_entries_for_update(asset_type)
            updated: Optional[AssetRecord] = None
            rewritten: list[AssetRecord] = []
            for entry in entries:
                if entry.asset_id == asset_id:
                    entry = entry.model_copy(update={"status": status})
                    updated = entry
                rewritten.append(entry)
            if updated is None:
                return None
            await self._write_type_entries(asset_type, rewritten)

        logger.info(f"Marked {asset_type.value} {asset_id} as {status.value}")
        return updated

    async def _read_type_entries_for_update(self, asset_type: AssetType) -> list[AssetRecord]:
        """
        Read a per-type document straight from the durable store.

        Unlike the reader, a failed read raises instead of reading as empty,
        so a mutation never overwrites a document it could not see.
        """
        try:
            document = await self._store.get_document(self._settings.type_document_key(asset_type))
        except DocumentNotFound:
            return []
        return parse_type_document(asset_type, document)

    async def _write_type_entries(
        self, asset_type: AssetType, entries: list[AssetRecord]
    ) -> None:
        key = self._settings.type_document_key(asset_type)
        await self._store.put_document(key, [entry.to_document() for entry in entries])
        # Force the next read to reload from the durable store
        self._memory.delete(type_memory_key(asset_type))
        await self._update_cache_metadata(asset_type, len(entries))
        logger.debug(f"Saved {len(entries)} {asset_type.value} entries to {key}")

    async def _update_cache_metadata(self, asset_type: AssetType, count: int) -> None:
        """
        Record one type's entry count in the cache metadata document.

        Every type shares this document, so updates are serialized by their own
        lock. If the current document cannot be read the update is skipped, so
        the other types' counts are never replaced by defaults.
        """
        key = self._settings.metadata_document_key
        async with self._metadata_lock:
            try:
                current = CacheMetadata.model_validate(await self._store.get_document(key))
            except DocumentNotFound:
                current = CacheMetadata()
            except (CacheError, ValidationError) as exc:
                logger.warning(
                    f"Skipping cache metadata update for {asset_type.value}: "
                    f"could not read {key}: {exc}"
                )
                return

            metadata = CacheMetadata(
                version=current.version,
                asset_counts={**current.asset_counts, asset_type.value: count},
            )
            await self._store.put_document(key, metadata.to_document())
            self._memory.delete(METADATA_MEMORY_KEY)
