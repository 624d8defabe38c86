# =============================================================================
# Lineage Graph Builder
# =============================================================================
# Builds the asset dependency graph from the metadata cache, persists it as
# one lineage document, and serves it from a dedicated in-process cache.
#
# Build phases:
#   1. Collect     - read every lineage asset type with StatusFilter.ALL
#   2. Initialize  - register an empty entry for every collected asset
#   3. Extract     - bounded workers resolve declared dependencies into edge
#                    lists; one sequential merge appends them
#   4. Closure     - synthesize direct datasource <-> dashboard/analysis edges
# =============================================================================

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from pydantic import ValidationError

from libs.matching import DatasourceMatcher, FlatFileDatasourceMatcher
from libs.models import (
    LINEAGE_ASSET_TYPES,
    AssetRecord,
    AssetType,
    CacheSettings,
    LineageDocument,
    LineageEntry,
    Relationship,
    RelationshipKind,
    StatusFilter,
    lineage_key,
)
from services.cache.cache_reader import CacheEntrySource
from services.cache.durable_store import DocumentStore
from services.cache.errors import CacheError, DocumentNotFound

from .graph import Edge, LineageGraph

if TYPE_CHECKING:
    from services.cache.cache_service import CacheService

__all__ = ["BuildPhase", "LineageBuildResult", "LineageGraphBuilder"]

logger = logging.getLogger(__name__)


class BuildPhase(str, Enum):
    """Build cycle state of a LineageGraphBuilder."""

    NOT_BUILT = "not_built"
    INITIALIZING = "initializing"
    EXTRACTING_RELATIONSHIPS = "extracting_relationships"
    COMPUTING_CLOSURE = "computing_closure"
    CACHED = "cached"


@dataclass
class LineageBuildResult:
    """Outcome of one full rebuild."""

    entries: list[LineageEntry]
    relationship_count: int
    transitive_count: int
    skipped_assets: int
    failed_assets: int
    persisted: bool

    @property
    def asset_count(self) -> int:
        return len(self.entries)


class LineageGraphBuilder:
    """
    Builds and serves the lineage graph.

    The builder only depends on the read-only CacheEntrySource interface and a
    DocumentStore for the lineage document; it never touches per-type cache
    documents.

    Rebuilds and lineage document writes are serialized by one lock, so two
    cold callers share a single build and a build never overwrites a
    concurrent one mid-write.

    Args:
        source: Cache read interface (CacheReader or CacheService)
        store: Durable store holding the lineage document
        settings: Cache settings (lineage TTL, worker pool size, document key)
        matcher: Flat-file datasource matcher; None disables fuzzy matching
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        source: CacheEntrySource,
        store: DocumentStore,
        settings: CacheSettings,
        matcher: Optional[DatasourceMatcher] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._store = store
        self._settings = settings
        self._matcher = matcher
        self._clock = clock

        self._lineage: Optional[dict[str, LineageEntry]] = None
        self._expires_at: Optional[float] = None
        self._lock = asyncio.Lock()
        self._phase = BuildPhase.NOT_BUILT
        self.last_build: Optional[LineageBuildResult] = None

    @classmethod
    def from_cache_service(cls, cache_service: "CacheService") -> "LineageGraphBuilder":
        """Build with the service's store and settings and the flat-file matcher enabled."""
        settings = cache_service.settings
        matcher = FlatFileDatasourceMatcher(
            max_time_diff=timedelta(seconds=settings.flat_file_match_window_seconds)
        )
        return cls(cache_service, cache_service.store, settings, matcher=matcher)

    @property
    def phase(self) -> BuildPhase:
        return self._phase

    # =========================================================================
    # Query surface
    # =========================================================================

    async def get_all_lineage(self) -> list[LineageEntry]:
        """
        Get every lineage entry.

        Served from the in-process cache while unexpired, else from the
        persisted lineage document, else from a full rebuild. Never raises:
        on failure the last known entries (possibly expired) or an empty list
        are returned.
        """
        cached = self._cached_entries()
        if cached is not None:
            return cached

        async with self._lock:
            # Another caller may have finished a build while we waited
            cached = self._cached_entries()
            if cached is not None:
                return cached

            try:
                persisted = await self._load_persisted()
                if persisted is not None:
                    logger.info(f"Loaded lineage from durable cache ({len(persisted)} assets)")
                    self._remember(persisted)
                    return persisted

                logger.info("Building lineage from cache entries (no lineage document found)")
                result = await self._rebuild_locked()
                return list(result.entries)
            except Exception as exc:
                logger.error(f"Error getting lineage: {exc}")
                self._phase = BuildPhase.CACHED if self._lineage else BuildPhase.NOT_BUILT
                return list(self._lineage.values()) if self._lineage else []

    async def get_asset_lineage(
        self, asset_id: str, asset_type: Optional[AssetType] = None
    ) -> Optional[LineageEntry]:
        """
        Find the lineage entry of one asset.

        Without ``asset_type`` the first entry with a matching id is returned.
        """
        for entry in await self.get_all_lineage():
            if entry.asset_id != asset_id:
                continue
            if asset_type is None or entry.asset_type == asset_type:
                return entry
        return None

    async def get_lineage_map_for_assets(
        self, asset_type: AssetType, asset_ids: Sequence[str]
    ) -> dict[str, LineageEntry]:
        """
        Look up entries for a batch of assets of one type.

        Returns:
            Dict keyed by "type:id"; assets without an entry are omitted
        """
        by_key = {entry.key: entry for entry in await self.get_all_lineage()}
        lineage_map: dict[str, LineageEntry] = {}
        for asset_id in asset_ids:
            key = lineage_key(asset_type, asset_id)
            if key in by_key:
                lineage_map[key] = by_key[key]
        return lineage_map

    async def get_dependents(self, asset_type: AssetType, asset_id: str) -> list[Relationship]:
        """
        Get the assets that depend on one asset (its used_by edges).

        This is the deletion-hazard check: a non-empty result means removing
        the asset would break the listed dependents.
        """
        entry = await self.get_asset_lineage(asset_id, asset_type)
        if entry is None:
            return []
        return [
            rel for rel in entry.relationships if rel.relationship_type == RelationshipKind.USED_BY
        ]

    def invalidate_cache(self) -> None:
        """Drop the in-process lineage cache. The persisted document is kept."""
        self._lineage = None
        self._expires_at = None
        self._phase = BuildPhase.NOT_BUILT
        logger.info("Lineage cache invalidated")

    async def rebuild_lineage(self) -> list[LineageEntry]:
        """
        Invalidate, rebuild from the cache and re-persist.

        Never raises; returns an empty list if the build itself failed.
        """
        try:
            result = await self.rebuild()
        except Exception as exc:
            logger.error(f"Error rebuilding lineage: {exc}")
            return []
        return list(result.entries)

    async def rebuild(self) -> LineageBuildResult:
        """
        Invalidate and run a full build, returning build statistics.

        A failed persist is not an error (see ``LineageBuildResult.persisted``).

        Raises:
            Exception: Whatever aborted the build (e.g. the cache source failing)
        """
        self.invalidate_cache()
        async with self._lock:
            try:
                result = await self._rebuild_locked()
            except Exception:
                self._phase = BuildPhase.NOT_BUILT
                raise
        logger.info("Rebuilt lineage cache")
        return result

    # =========================================================================
    # In-process cache
    # =========================================================================

    def _cached_entries(self) -> Optional[list[LineageEntry]]:
        if self._lineage is None or self._expires_at is None:
            return None
        if self._clock() >= self._expires_at:
            return None
        return list(self._lineage.values())

    def _remember(self, entries: list[LineageEntry]) -> None:
        self._lineage = {entry.key: entry for entry in entries}
        self._expires_at = self._clock() + self._settings.lineage_ttl_seconds
        self._phase = BuildPhase.CACHED

    # =========================================================================
    # Lineage document
    # =========================================================================

    async def _load_persisted(self) -> Optional[list[LineageEntry]]:
        key = self._settings.lineage_document_key
        try:
            document = await self._store.get_document(key)
        except DocumentNotFound:
            logger.debug("No lineage cache found in durable store")
            return None
        except CacheError as exc:
            logger.warning(f"Failed to read lineage cache, rebuilding: {exc}")
            return None

        try:
            return LineageDocument.model_validate(document).lineage_map
        except ValidationError as exc:
            logger.warning(f"Ignoring invalid lineage cache document: {exc.error_count()} error(s)")
            return None

    async def _persist(self, entries: list[LineageEntry]) -> bool:
        document = LineageDocument.from_entries(entries)
        try:
            await self._store.put_document(
                self._settings.lineage_document_key, document.to_document()
            )
        except CacheError as exc:
            logger.error(f"Failed to save lineage cache: {exc}")
            return False

        logger.info(
            f"Saved lineage cache with {document.asset_count} assets "
            f"and {document.relationship_count} relationships"
        )
        return True

    # =========================================================================
    # Build
    # =========================================================================

    async def _rebuild_locked(self) -> LineageBuildResult:
        """Full build + persist. Caller holds ``self._lock``."""
        started = time.perf_counter()

        # Phase 1 + 2
        self._phase = BuildPhase.INITIALIZING
        records, datasources, skipped = await self._collect_assets()
        logger.info(f"Building lineage for {len(records)} assets ({skipped} skipped)")

        graph = LineageGraph()
        for record in records:
            graph.add_entry(record)

        # Phase 3
        self._phase = BuildPhase.EXTRACTING_RELATIONSHIPS
        failed = await self._extract_relationships(graph, records, datasources)
        logger.info(
            f"Processed lineage for {len(records) - failed}/{len(records)} assets, "
            f"found {graph.relationship_count()} direct relationships"
        )

        # Phase 4
        self._phase = BuildPhase.COMPUTING_CLOSURE
        transitive = graph.compute_transitive_closure()
        logger.info(f"Added {transitive} transitive relationships")

        entries = graph.entries()
        persisted = await self._persist(entries)
        self._remember(entries)

        result = LineageBuildResult(
            entries=entries,
            relationship_count=graph.relationship_count(),
            transitive_count=transitive,
            skipped_assets=skipped,
            failed_assets=failed,
            persisted=persisted,
        )
        self.last_build = result
        logger.info(
            f"Lineage build complete: {result.asset_count} assets, "
            f"{result.relationship_count} relationships in "
            f"{time.perf_counter() - started:.2f}s"
        )
        return result

    async def _collect_assets(self) -> tuple[list[AssetRecord], list[AssetRecord], int]:
        """
        Read all lineage asset types, archived included.

        Returns:
            (assets with an export pointer, all datasources, number skipped)
        """
        per_type = await asyncio.gather(
            *(
                self._source.get_cache_entries(asset_type, StatusFilter.ALL)
                for asset_type in LINEAGE_ASSET_TYPES
            )
        )

        records: list[AssetRecord] = []
        datasources: list[AssetRecord] = []
        skipped = 0
        for asset_type, entries in zip(LINEAGE_ASSET_TYPES, per_type):
            if asset_type == AssetType.DATASOURCE:
                datasources = list(entries)
            for entry in entries:
                if not entry.export_file_path:
                    logger.warning(
                        f"Asset {entry.asset_id} of type {asset_type.value} "
                        f"is missing exportFilePath, skipping"
                    )
                    skipped += 1
                    continue
                records.append(entry)
        return records, datasources, skipped

    async def _extract_relationships(
        self,
        graph: LineageGraph,
        records: list[AssetRecord],
        datasources: list[AssetRecord],
    ) -> int:
        """
        Resolve every asset's declared dependencies and merge them into the graph.

        Workers only read the graph; all appends happen in the single merge
        after the join.

        Returns:
            Number of assets whose extraction failed
        """
        semaphore = asyncio.Semaphore(self._settings.lineage_concurrency)

        async def extract(record: AssetRecord) -> Optional[list[Edge]]:
            async with semaphore:
                try:
                    return await self._extract_asset_edges(graph, record, datasources)
                except Exception as exc:
                    logger.warning(
                        f"Failed to process lineage for {record.asset_type.value} "
                        f"{record.asset_id}: {exc}"
                    )
                    return None

        results = await asyncio.gather(*(extract(record) for record in records))

        failed = sum(1 for edges in results if edges is None)
        graph.merge(edge for edges in results if edges for edge in edges)
        return failed

    async def _extract_asset_edges(
        self,
        graph: LineageGraph,
        asset: AssetRecord,
        datasources: list[AssetRecord],
    ) -> list[Edge]:
        record = await self._source.get_asset(asset.asset_type, asset.asset_id)
        if record is None:
            logger.warning(f"No cache entry found for {asset.asset_type.value} {asset.asset_id}")
            return []

        key = lineage_key(record.asset_type, record.asset_id)
        hints = record.lineage_hints
        edges: list[Edge] = []

        if record.asset_type == AssetType.DASHBOARD and hints.source_analysis_id:
            edges.extend(graph.pair(key, lineage_key(AssetType.ANALYSIS, hints.source_analysis_id)))

        if record.asset_type in (AssetType.DASHBOARD, AssetType.ANALYSIS):
            for dataset_id in hints.dataset_ids:
                edges.extend(graph.pair(key, lineage_key(AssetType.DATASET, dataset_id)))

        elif record.asset_type == AssetType.DATASET:
            # Composite datasets declare their child datasets
            for child_id in hints.dataset_ids:
                edges.extend(graph.pair(key, lineage_key(AssetType.DATASET, child_id)))

            for datasource_id in hints.datasource_ids:
                edges.extend(graph.pair(key, lineage_key(AssetType.DATASOURCE, datasource_id)))

            if not hints.dataset_ids and not hints.datasource_ids and self._matcher is not None:
                # Uploaded flat files carry no datasource reference
                match = self._matcher.match(record, datasources)
                if match is not None:
                    edges.extend(
                        graph.pair(key, lineage_key(AssetType.DATASOURCE, match.datasource_id))
                    )

        return edges
