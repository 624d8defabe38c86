# =============================================================================
# Asset Models Module
# =============================================================================
# Defines models for cached BI asset records:
# - AssetType / AssetStatus: asset classification enums
# - StatusFilter: query-time archival predicate
# - LineageHints: declared dependency ids captured at export time
# - AssetRecord: one entry of a per-type cache document
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import ConfigDict, Field

from libs.s3_utils import arn_resource_id

from .base import CamelModel

__all__ = [
    "AssetType",
    "AssetStatus",
    "StatusFilter",
    "DEFAULT_STATUS_FILTER",
    "LINEAGE_ASSET_TYPES",
    "matches_status_filter",
    "LineageHints",
    "AssetRecordMetadata",
    "AssetRecord",
]


# =============================================================================
# Enums
# =============================================================================


class AssetType(str, Enum):
    """Asset types held in the metadata cache (always singular)."""

    DASHBOARD = "dashboard"
    ANALYSIS = "analysis"
    DATASET = "dataset"
    DATASOURCE = "datasource"
    FOLDER = "folder"
    USER = "user"
    GROUP = "group"


LINEAGE_ASSET_TYPES: tuple[AssetType, ...] = (
    AssetType.DASHBOARD,
    AssetType.ANALYSIS,
    AssetType.DATASET,
    AssetType.DATASOURCE,
)
"""Asset types that take part in the lineage graph."""


class AssetStatus(str, Enum):
    """Lifecycle status written by the export and archiving pipelines."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


class StatusFilter(str, Enum):
    """Status predicate applied when reading cache entries."""

    ALL = "all"
    ACTIVE = "active"
    ARCHIVED = "archived"


DEFAULT_STATUS_FILTER = StatusFilter.ACTIVE
"""Filter used whenever a caller omits one, so archived assets stay out of listings."""


def matches_status_filter(status: AssetStatus | str, status_filter: StatusFilter) -> bool:
    """
    Check whether an asset status passes a status filter.

    - ALL passes everything
    - ACTIVE excludes archived assets
    - ARCHIVED keeps archived assets only

    Args:
        status: Asset status (enum or raw string)
        status_filter: Filter to apply

    Returns:
        True if the asset should be included

    Examples:
        >>> matches_status_filter("archived", StatusFilter.ACTIVE)
        False
        >>> matches_status_filter(AssetStatus.ACTIVE, StatusFilter.ALL)
        True
    """
    value = status.value if isinstance(status, AssetStatus) else str(status)
    if status_filter == StatusFilter.ALL:
        return True
    if status_filter == StatusFilter.ARCHIVED:
        return value == AssetStatus.ARCHIVED.value
    return value != AssetStatus.ARCHIVED.value


# =============================================================================
# Asset Record Models
# =============================================================================


class LineageHints(CamelModel):
    """
    Dependency ids declared on an asset at export time.

    Attributes:
        source_analysis_arn: For dashboards, the ARN of the analysis it was published from
        dataset_ids: For dashboards/analyses, datasets used; for datasets, child datasets
        datasource_ids: For datasets, datasources referenced by the physical tables
    """

    model_config = ConfigDict(extra="allow")

    source_analysis_arn: Optional[str] = Field(None, description="Source analysis ARN")
    dataset_ids: list[str] = Field(default_factory=list, description="Declared dataset ids")
    datasource_ids: list[str] = Field(
        default_factory=list, description="Declared datasource ids"
    )

    @property
    def source_analysis_id(self) -> Optional[str]:
        """Analysis id taken from the last path segment of the source ARN."""
        if not self.source_analysis_arn:
            return None
        return arn_resource_id(self.source_analysis_arn) or None


class AssetRecordMetadata(CamelModel):
    """Type-specific metadata bag. Unknown keys are kept as-is."""

    model_config = ConfigDict(extra="allow")

    description: Optional[str] = None
    source_type: Optional[str] = Field(
        None, description="Source type (FILE, S3, ATHENA, REDSHIFT, ...)"
    )
    lineage_data: Optional[LineageHints] = None


class AssetRecord(CamelModel):
    """
    One cached asset as stored in a per-type cache document.

    Records are produced by the export pipeline; this package only reads them
    (and rewrites them verbatim through the cache mutation methods), so any
    field not modelled here is preserved.

    Attributes:
        asset_id: Asset id, unique within its type
        asset_type: Asset type
        asset_name: Display name
        arn: Resource ARN
        status: Lifecycle status
        created_time: Creation timestamp from the source service
        last_updated_time: Last update timestamp from the source service
        export_file_path: Storage-location pointer of the full exported document
        metadata: Type-specific metadata including lineage hints
        tags: Key/value tags
    """

    model_config = ConfigDict(extra="allow")

    asset_id: str = Field(..., min_length=1, description="Asset id (unique within type)")
    asset_type: AssetType = Field(..., description="Asset type")
    asset_name: str = Field("", description="Display name")
    arn: str = Field("", description="Resource ARN")
    status: AssetStatus = Field(AssetStatus.ACTIVE, description="Lifecycle status")
    created_time: Optional[datetime] = Field(None, description="Creation timestamp")
    last_updated_time: Optional[datetime] = Field(None, description="Last update timestamp")
    export_file_path: Optional[str] = Field(
        None, description="Key of the exported asset document, e.g. assets/dashboards/abc.json"
    )
    metadata: AssetRecordMetadata = Field(default_factory=AssetRecordMetadata)
    tags: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def is_archived(self) -> bool:
        return self.status == AssetStatus.ARCHIVED

    @property
    def lineage_hints(self) -> LineageHints:
        """Declared lineage hints, empty when the export captured none."""
        return self.metadata.lineage_data or LineageHints()
