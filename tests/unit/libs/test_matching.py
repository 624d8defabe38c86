# =============================================================================
# Unit Tests: Flat-File Datasource Matching
# =============================================================================

from datetime import timedelta

import pytest

from libs.matching import FlatFileDatasourceMatcher, get_flat_file_datasource_revision
from libs.models import AssetRecord


@pytest.fixture
def record(make_record):
    def _record(*args, **kwargs) -> AssetRecord:
        return AssetRecord.model_validate(make_record(*args, **kwargs))

    return _record


@pytest.fixture
def matcher():
    return FlatFileDatasourceMatcher(max_time_diff=timedelta(minutes=2))


# =============================================================================
# Test: FlatFileDatasourceMatcher
# =============================================================================

class TestFlatFileDatasourceMatcher:
    """Tests for FlatFileDatasourceMatcher.match."""

    def test_matches_same_name_file_datasource(self, matcher, record, minutes):
        dataset = record("dataset", "d1", name="sales.csv", created=minutes(1), updated=minutes(30))
        datasource = record("datasource", "ds1", name="sales.csv", source_type="FILE", created=minutes(0))

        result = matcher.match(dataset, [datasource])

        assert result is not None
        assert result.datasource_id == "ds1"
        assert result.time_diff == timedelta(minutes=1)
        assert result.matched_by == "creation"

    def test_source_type_is_case_insensitive(self, matcher, record, minutes):
        dataset = record("dataset", "d1", name="sales.csv", created=minutes(0))
        datasource = record("datasource", "ds1", name="sales.csv", source_type="file", created=minutes(0))

        assert matcher.match(dataset, [datasource]).datasource_id == "ds1"

    def test_ignores_other_names_and_types(self, matcher, record, minutes):
        dataset = record("dataset", "d1", name="sales.csv", created=minutes(0))
        candidates = [
            record("datasource", "ds1", name="other.csv", source_type="FILE", created=minutes(0)),
            record("datasource", "ds2", name="sales.csv", source_type="S3", created=minutes(0)),
        ]

        assert matcher.match(dataset, candidates) is None

    def test_outside_window_no_match(self, matcher, record, minutes):
        dataset = record("dataset", "d1", name="sales.csv", created=minutes(10))
        datasource = record("datasource", "ds1", name="sales.csv", source_type="FILE", created=minutes(0))

        assert matcher.match(dataset, [datasource]) is None

    def test_window_is_exclusive(self, matcher, record, minutes):
        dataset = record("dataset", "d1", name="sales.csv", created=minutes(2))
        datasource = record("datasource", "ds1", name="sales.csv", source_type="FILE", created=minutes(0))

        assert matcher.match(dataset, [datasource]) is None

    def test_matches_on_update_time_after_replacement(self, matcher, record, minutes):
        # Dataset created long ago, file replaced (new datasource) at its last update
        dataset = record("dataset", "d1", name="sales.csv", created=minutes(0), updated=minutes(60))
        datasource = record("datasource", "ds2", name="sales.csv", source_type="FILE", created=minutes(60.5))

        result = matcher.match(dataset, [datasource])

        assert result.datasource_id == "ds2"
        assert result.matched_by == "update"

    def test_closest_candidate_wins(self, matcher, record, minutes):
        dataset = record("dataset", "d1", name="sales.csv", created=minutes(0))
        candidates = [
            record("datasource", "far", name="sales.csv", source_type="FILE", created=minutes(1.5)),
            record("datasource", "near", name="sales.csv", source_type="FILE", created=minutes(0.25)),
        ]

        assert matcher.match(dataset, candidates).datasource_id == "near"


# =============================================================================
# Test: get_flat_file_datasource_revision
# =============================================================================

class TestDatasourceRevision:
    """Tests for get_flat_file_datasource_revision."""

    def test_revision_ordered_by_creation(self, record, minutes):
        datasources = [
            record("datasource", "v2", name="sales.csv", created=minutes(10)),
            record("datasource", "v1", name="sales.csv", created=minutes(0)),
            record("datasource", "x", name="other.csv", created=minutes(5)),
        ]

        assert get_flat_file_datasource_revision("sales.csv", minutes(0), datasources) == 1
        assert get_flat_file_datasource_revision("sales.csv", minutes(10), datasources) == 2

    def test_unknown_datasource(self, record, minutes):
        datasources = [record("datasource", "v1", name="sales.csv", created=minutes(0))]
        assert get_flat_file_datasource_revision("sales.csv", minutes(3), datasources) == 0
