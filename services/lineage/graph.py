# =============================================================================
# Lineage Graph - Entry Map, Edge Pairs and Transitive Closure
# =============================================================================
# In-memory graph for one build cycle. Entries are keyed by "type:id".
# Edges are always added in complementary uses/used_by pairs.
# =============================================================================

import logging
from typing import Iterable, Iterator, Optional

from libs.models import (
    AssetRecord,
    AssetType,
    LineageEntry,
    LineageMetadata,
    Relationship,
    RelationshipKind,
)

__all__ = ["Edge", "LineageGraph", "CONSUMER_TYPES"]

logger = logging.getLogger(__name__)

# (owner key, relationship stored on the owner's entry)
Edge = tuple[str, Relationship]

CONSUMER_TYPES = (AssetType.DASHBOARD, AssetType.ANALYSIS)


class LineageGraph:
    """
    Map of lineage entries for one build.

    Entries must all be registered before any edge is resolved, because
    ``pair`` drops edges whose target has no entry.
    """

    def __init__(self) -> None:
        self._entries: dict[str, LineageEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[LineageEntry]:
        return iter(self._entries.values())

    def get(self, key: str) -> Optional[LineageEntry]:
        return self._entries.get(key)

    def entries(self) -> list[LineageEntry]:
        return list(self._entries.values())

    def relationship_count(self) -> int:
        return sum(len(entry.relationships) for entry in self._entries.values())

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    def add_entry(self, record: AssetRecord) -> LineageEntry:
        """Register an empty entry for an asset (replacing any previous one)."""
        metadata = None
        if record.asset_type == AssetType.DATASOURCE and record.metadata.source_type:
            metadata = LineageMetadata(datasource_type=record.metadata.source_type)

        entry = LineageEntry(
            asset_id=record.asset_id,
            asset_type=record.asset_type,
            asset_name=record.asset_name,
            is_archived=record.is_archived,
            metadata=metadata,
        )
        self._entries[entry.key] = entry
        return entry

    # -------------------------------------------------------------------------
    # Edges
    # -------------------------------------------------------------------------

    def pair(self, source_key: str, target_key: str) -> list[Edge]:
        """
        Build the uses/used_by pair for "source uses target".

        Read-only: safe to call from concurrent workers. Returns no edges and
        logs a warning when either endpoint has no entry.
        """
        source = self._entries.get(source_key)
        target = self._entries.get(target_key)
        if source is None or target is None:
            missing = target_key if target is None else source_key
            logger.warning(
                f"Dropping relationship {source_key} -> {target_key}: "
                f"{missing} not found in lineage map"
            )
            return []

        uses = Relationship(
            source_asset_id=source.asset_id,
            source_asset_type=source.asset_type,
            source_asset_name=source.asset_name,
            source_is_archived=source.is_archived,
            target_asset_id=target.asset_id,
            target_asset_type=target.asset_type,
            target_asset_name=target.asset_name,
            target_is_archived=target.is_archived,
            relationship_type=RelationshipKind.USES,
        )
        return [(source.key, uses), (target.key, uses.inverse())]

    def merge(self, edges: Iterable[Edge]) -> int:
        """
        Append edges to their owners, skipping duplicates.

        Must be called from a single task; this is the only writer of
        relationship lists.

        Returns:
            Number of edges appended
        """
        added = 0
        for owner_key, relationship in edges:
            owner = self._entries.get(owner_key)
            if owner is None:
                logger.warning(f"Dropping relationship owned by unknown asset {owner_key}")
                continue
            if owner.has_relationship(relationship):
                continue
            owner.relationships.append(relationship)
            added += 1
        return added

    # -------------------------------------------------------------------------
    # Transitive closure
    # -------------------------------------------------------------------------

    def compute_transitive_closure(self) -> int:
        """
        Collapse datasource -> dataset -> dashboard/analysis chains into direct edges.

        Two single-pass sweeps over the three-tier hierarchy:
        - from each datasource, through the datasets it is used by, to their
          dashboard/analysis consumers
        - from each dashboard/analysis, through the datasets it uses, to
          their datasources

        Every synthesized edge is added with its complement.

        Returns:
            Number of edges appended
        """
        added = self.merge(self._datasource_rooted_edges())
        added += self.merge(self._consumer_rooted_edges())
        return added

    def _datasource_rooted_edges(self) -> list[Edge]:
        edges: list[Edge] = []
        for datasource in self._entries.values():
            if datasource.asset_type != AssetType.DATASOURCE:
                continue
            for dataset in self._related(datasource, RelationshipKind.USED_BY, (AssetType.DATASET,)):
                for consumer in self._related(dataset, RelationshipKind.USED_BY, CONSUMER_TYPES):
                    edges.extend(self.pair(consumer.key, datasource.key))
        return edges

    def _consumer_rooted_edges(self) -> list[Edge]:
        edges: list[Edge] = []
        for consumer in self._entries.values():
            if consumer.asset_type not in CONSUMER_TYPES:
                continue
            for dataset in self._related(consumer, RelationshipKind.USES, (AssetType.DATASET,)):
                for datasource in self._related(dataset, RelationshipKind.USES, (AssetType.DATASOURCE,)):
                    edges.extend(self.pair(consumer.key, datasource.key))
        return edges

    def _related(
        self,
        entry: LineageEntry,
        kind: RelationshipKind,
        target_types: tuple[AssetType, ...],
    ) -> list[LineageEntry]:
        related = []
        for relationship in entry.relationships:
            if relationship.relationship_type != kind:
                continue
            if relationship.target_asset_type not in target_types:
                continue
            target = self._entries.get(relationship.target_key)
            if target is not None:
                related.append(target)
        return related
