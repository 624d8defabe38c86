# =============================================================================
# Lineage Models Module
# =============================================================================
# Defines models for the derived asset dependency graph:
# - Relationship: one directed edge (uses / used_by)
# - LineageEntry: all edges owned by one asset
# - LineageDocument: the persisted lineage cache document
# =============================================================================

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import Field

from .asset import AssetType
from .base import CamelModel

__all__ = [
    "RelationshipKind",
    "Relationship",
    "LineageMetadata",
    "LineageEntry",
    "LineageDocument",
    "lineage_key",
]


def lineage_key(asset_type: AssetType | str, asset_id: str) -> str:
    """
    Build the composite lineage identity for an asset.

    Examples:
        >>> lineage_key(AssetType.DATASET, "abc")
        'dataset:abc'
    """
    type_value = asset_type.value if isinstance(asset_type, AssetType) else asset_type
    return f"{type_value}:{asset_id}"


class RelationshipKind(str, Enum):
    """Direction of a relationship as seen from its owning entry."""

    USES = "uses"
    USED_BY = "used_by"

    @property
    def inverse(self) -> "RelationshipKind":
        return RelationshipKind.USED_BY if self is RelationshipKind.USES else RelationshipKind.USES


class Relationship(CamelModel):
    """
    A directed edge stored on its source asset's lineage entry.

    Every relationship has a complementary edge on the target entry with the
    inverse kind and source/target swapped.
    """

    source_asset_id: str
    source_asset_type: AssetType
    source_asset_name: str = ""
    source_is_archived: bool = False
    target_asset_id: str
    target_asset_type: AssetType
    target_asset_name: str = ""
    target_is_archived: bool = False
    relationship_type: RelationshipKind

    @property
    def target_key(self) -> str:
        return lineage_key(self.target_asset_type, self.target_asset_id)

    @property
    def dedupe_key(self) -> tuple[str, str, str]:
        """Identity used to deduplicate edges within one entry."""
        return (
            self.target_asset_id,
            self.target_asset_type.value,
            self.relationship_type.value,
        )

    def inverse(self) -> "Relationship":
        """Return the complementary edge owned by the target asset."""
        return Relationship(
            source_asset_id=self.target_asset_id,
            source_asset_type=self.target_asset_type,
            source_asset_name=self.target_asset_name,
            source_is_archived=self.target_is_archived,
            target_asset_id=self.source_asset_id,
            target_asset_type=self.source_asset_type,
            target_asset_name=self.source_asset_name,
            target_is_archived=self.source_is_archived,
            relationship_type=self.relationship_type.inverse,
        )


class LineageMetadata(CamelModel):
    """Extra per-entry information (datasource subtype for datasource entries)."""

    datasource_type: Optional[str] = Field(
        None, description="Datasource subtype: S3, ATHENA, FILE, REDSHIFT, ..."
    )


class LineageEntry(CamelModel):
    """
    All relationships owned by one asset.

    Attributes:
        asset_id: Asset id
        asset_type: Asset type (dashboard, analysis, dataset or datasource)
        asset_name: Display name
        is_archived: Whether the asset is archived
        relationships: Outbound (uses) and inbound (used_by) edges
        metadata: Optional datasource subtype
    """

    asset_id: str
    asset_type: AssetType
    asset_name: str = ""
    is_archived: bool = False
    relationships: list[Relationship] = Field(default_factory=list)
    metadata: Optional[LineageMetadata] = None

    @property
    def key(self) -> str:
        return lineage_key(self.asset_type, self.asset_id)

    @property
    def datasource_subtype(self) -> Optional[str]:
        return self.metadata.datasource_type if self.metadata else None

    def has_relationship(self, relationship: Relationship) -> bool:
        key = relationship.dedupe_key
        return any(existing.dedupe_key == key for existing in self.relationships)

    def relationship_counts(self) -> dict[str, int]:
        """
        Count edges by kind and related asset type, for listing enrichment.

        Returns:
            Dict such as {"uses": 2, "used_by": 1, "uses:dataset": 2, "used_by:dashboard": 1}
        """
        counts: dict[str, int] = {}
        for rel in self.relationships:
            kind = rel.relationship_type.value
            counts[kind] = counts.get(kind, 0) + 1
            typed = f"{kind}:{rel.target_asset_type.value}"
            counts[typed] = counts.get(typed, 0) + 1
        return counts


class LineageDocument(CamelModel):
    """Persisted lineage cache document (``cache/lineage-cache.json``)."""

    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    asset_count: int = 0
    relationship_count: int = 0
    lineage_map: list[LineageEntry] = Field(default_factory=list)

    @classmethod
    def from_entries(cls, entries: list[LineageEntry]) -> "LineageDocument":
        return cls(
            asset_count=len(entries),
            relationship_count=sum(len(entry.relationships) for entry in entries),
            lineage_map=entries,
        )
