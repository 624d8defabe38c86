# =============================================================================
# Unit Tests: Data Models
# =============================================================================

import pytest
from pydantic import ValidationError

from libs.models import (
    DEFAULT_STATUS_FILTER,
    AssetRecord,
    AssetStatus,
    AssetType,
    CacheSettings,
    LineageDocument,
    LineageEntry,
    LineageHints,
    MinIOSettings,
    Relationship,
    RelationshipKind,
    StatusFilter,
    lineage_key,
    matches_status_filter,
)


def _relationship(kind=RelationshipKind.USES, target_id="d1", target_type=AssetType.DATASET):
    return Relationship(
        source_asset_id="dash1",
        source_asset_type=AssetType.DASHBOARD,
        source_asset_name="Sales",
        target_asset_id=target_id,
        target_asset_type=target_type,
        target_asset_name="Orders",
        target_is_archived=True,
        relationship_type=kind,
    )


# =============================================================================
# Test: Status Filter
# =============================================================================

class TestStatusFilter:
    """Tests for matches_status_filter."""

    def test_default_is_active(self):
        assert DEFAULT_STATUS_FILTER == StatusFilter.ACTIVE

    @pytest.mark.parametrize("status", ["active", "archived", "deleted"])
    def test_all_passes_everything(self, status):
        assert matches_status_filter(status, StatusFilter.ALL)

    def test_active_excludes_archived_only(self):
        assert matches_status_filter(AssetStatus.ACTIVE, StatusFilter.ACTIVE)
        assert matches_status_filter(AssetStatus.DELETED, StatusFilter.ACTIVE)
        assert not matches_status_filter(AssetStatus.ARCHIVED, StatusFilter.ACTIVE)

    def test_archived_keeps_archived_only(self):
        assert matches_status_filter("archived", StatusFilter.ARCHIVED)
        assert not matches_status_filter("active", StatusFilter.ARCHIVED)
        assert not matches_status_filter("deleted", StatusFilter.ARCHIVED)


# =============================================================================
# Test: AssetRecord
# =============================================================================

class TestAssetRecord:
    """Tests for AssetRecord parsing."""

    def test_parses_camel_case_document(self, make_record):
        record = AssetRecord.model_validate(
            make_record("dataset", "d1", name="Orders", datasource_ids=["ds1"], source_type="S3")
        )
        assert record.asset_id == "d1"
        assert record.asset_type == AssetType.DATASET
        assert record.asset_name == "Orders"
        assert record.export_file_path == "assets/datasets/d1.json"
        assert record.metadata.source_type == "S3"
        assert record.lineage_hints.datasource_ids == ["ds1"]
        assert record.created_time is not None

    def test_accepts_snake_case_names(self):
        record = AssetRecord(asset_id="a1", asset_type=AssetType.ANALYSIS, asset_name="Q1")
        assert record.asset_name == "Q1"
        assert record.status == AssetStatus.ACTIVE

    def test_unknown_fields_survive_round_trip(self, make_record):
        raw = make_record("dashboard", "dash1")
        raw["permissions"] = [{"principal": "admin"}]
        raw["metadata"]["sheetCount"] = 3

        document = AssetRecord.model_validate(raw).to_document()

        assert document["permissions"] == [{"principal": "admin"}]
        assert document["metadata"]["sheetCount"] == 3
        assert document["assetId"] == "dash1"

    def test_empty_asset_id_rejected(self):
        with pytest.raises(ValidationError):
            AssetRecord(asset_id="", asset_type=AssetType.DATASET)

    def test_unknown_asset_type_rejected(self):
        with pytest.raises(ValidationError):
            AssetRecord.model_validate({"assetId": "x", "assetType": "notebook"})

    def test_is_archived(self):
        record = AssetRecord(asset_id="d1", asset_type=AssetType.DATASET, status="archived")
        assert record.is_archived

    def test_missing_lineage_data_reads_as_empty_hints(self):
        record = AssetRecord(asset_id="d1", asset_type=AssetType.DATASET)
        assert record.lineage_hints.dataset_ids == []
        assert record.lineage_hints.datasource_ids == []
        assert record.lineage_hints.source_analysis_id is None


class TestLineageHints:
    """Tests for LineageHints."""

    def test_source_analysis_id_from_arn(self):
        hints = LineageHints(
            source_analysis_arn="arn:aws:quicksight:us-east-1:123:analysis/an-42"
        )
        assert hints.source_analysis_id == "an-42"

    def test_source_analysis_id_without_arn(self):
        assert LineageHints().source_analysis_id is None


# =============================================================================
# Test: Lineage Models
# =============================================================================

class TestRelationship:
    """Tests for Relationship."""

    def test_inverse_swaps_endpoints_and_kind(self):
        rel = _relationship()
        inverse = rel.inverse()

        assert inverse.source_asset_id == "d1"
        assert inverse.source_asset_type == AssetType.DATASET
        assert inverse.source_is_archived is True
        assert inverse.target_asset_id == "dash1"
        assert inverse.target_asset_name == "Sales"
        assert inverse.relationship_type == RelationshipKind.USED_BY
        assert inverse.inverse() == rel

    def test_dedupe_key(self):
        assert _relationship().dedupe_key == ("d1", "dataset", "uses")

    def test_wire_format(self):
        document = _relationship().to_document()
        assert document["sourceAssetId"] == "dash1"
        assert document["targetIsArchived"] is True
        assert document["relationshipType"] == "uses"
        assert document["targetAssetType"] == "dataset"


class TestLineageEntry:
    """Tests for LineageEntry helpers."""

    def test_key(self):
        entry = LineageEntry(asset_id="ds1", asset_type=AssetType.DATASOURCE)
        assert entry.key == "datasource:ds1" == lineage_key(AssetType.DATASOURCE, "ds1")

    def test_has_relationship_ignores_names(self):
        entry = LineageEntry(
            asset_id="dash1", asset_type=AssetType.DASHBOARD, relationships=[_relationship()]
        )
        renamed = _relationship().model_copy(update={"target_asset_name": "Renamed"})
        assert entry.has_relationship(renamed)
        assert not entry.has_relationship(_relationship(kind=RelationshipKind.USED_BY))

    def test_relationship_counts(self):
        entry = LineageEntry(
            asset_id="dash1",
            asset_type=AssetType.DASHBOARD,
            relationships=[
                _relationship(target_id="d1"),
                _relationship(target_id="d2"),
                _relationship(target_id="a1", target_type=AssetType.ANALYSIS),
            ],
        )
        counts = entry.relationship_counts()
        assert counts["uses"] == 3
        assert counts["uses:dataset"] == 2
        assert counts["uses:analysis"] == 1
        assert "used_by" not in counts


class TestLineageDocument:
    """Tests for LineageDocument."""

    def test_from_entries_counts(self):
        entries = [
            LineageEntry(asset_id="dash1", asset_type=AssetType.DASHBOARD, relationships=[_relationship()]),
            LineageEntry(asset_id="d1", asset_type=AssetType.DATASET, relationships=[_relationship().inverse()]),
            LineageEntry(asset_id="ds9", asset_type=AssetType.DATASOURCE),
        ]
        document = LineageDocument.from_entries(entries)
        assert document.asset_count == 3
        assert document.relationship_count == 2

    def test_document_keys(self):
        document = LineageDocument.from_entries(
            [LineageEntry(asset_id="ds1", asset_type=AssetType.DATASOURCE)]
        ).to_document()

        assert set(document) == {"lastUpdated", "assetCount", "relationshipCount", "lineageMap"}
        entry = document["lineageMap"][0]
        assert entry["assetId"] == "ds1"
        assert entry["isArchived"] is False
        assert entry["relationships"] == []
        assert "metadata" not in entry

    def test_parses_persisted_document(self):
        document = {
            "lastUpdated": "2024-03-01T12:00:00+00:00",
            "assetCount": 1,
            "relationshipCount": 0,
            "lineageMap": [
                {
                    "assetId": "ds1",
                    "assetType": "datasource",
                    "assetName": "Lake",
                    "isArchived": False,
                    "relationships": [],
                    "metadata": {"datasourceType": "S3"},
                }
            ],
        }
        parsed = LineageDocument.model_validate(document)
        assert parsed.lineage_map[0].datasource_subtype == "S3"


# =============================================================================
# Test: Settings
# =============================================================================

class TestSettings:
    """Tests for configuration models."""

    def test_cache_document_keys(self, cache_settings):
        assert cache_settings.type_document_key(AssetType.DATASET) == "cache/dataset.json"
        assert cache_settings.lineage_document_key == "cache/lineage-cache.json"
        assert cache_settings.metadata_document_key == "cache/metadata.json"

    def test_cache_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("CACHE_PREFIX", "snapshots/")
        monkeypatch.setenv("LINEAGE_CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("LINEAGE_CONCURRENCY", "8")

        settings = CacheSettings()

        assert settings.lineage_ttl_seconds == 60
        assert settings.lineage_concurrency == 8
        assert settings.lineage_document_key == "snapshots/lineage-cache.json"

    def test_invalid_concurrency_rejected(self):
        with pytest.raises(ValidationError):
            CacheSettings(lineage_concurrency=0)

    def test_minio_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("MINIO_ENDPOINT", "minio:9000")
        monkeypatch.setenv("MINIO_ROOT_USER", "user")
        monkeypatch.setenv("MINIO_ROOT_PASSWORD", "secret")

        settings = MinIOSettings()

        assert settings.endpoint == "minio:9000"
        assert settings.access_key == "user"
        assert settings.use_ssl is False
        assert settings.metadata_bucket == "asset-metadata"
