# =============================================================================
# Unit Tests: S3 Utils
# =============================================================================

import pytest

from libs.s3_utils import arn_resource_id, build_cache_key, extract_s3_key, parse_s3_path


# =============================================================================
# Test: parse_s3_path
# =============================================================================

class TestParseS3Path:
    """Tests for parse_s3_path function."""

    def test_valid_s3_path(self):
        bucket, key = parse_s3_path("s3://asset-metadata/cache/dataset.json")
        assert bucket == "asset-metadata"
        assert key == "cache/dataset.json"

    def test_valid_s3_path_deeply_nested(self):
        bucket, key = parse_s3_path("s3://bucket/a/b/c/file.json")
        assert bucket == "bucket"
        assert key == "a/b/c/file.json"

    @pytest.mark.parametrize(
        "path",
        ["asset-metadata/cache/dataset.json", "s3://", "s3://bucket", "s3://bucket/", "s3:///key"],
    )
    def test_invalid_paths(self, path):
        with pytest.raises(ValueError, match="Invalid S3 path format"):
            parse_s3_path(path)


# =============================================================================
# Test: extract_s3_key
# =============================================================================

class TestExtractS3Key:
    """Tests for extract_s3_key function."""

    def test_from_s3_path(self):
        assert extract_s3_key("s3://asset-metadata/cache/lineage-cache.json") == "cache/lineage-cache.json"

    def test_plain_key_unchanged(self):
        assert extract_s3_key("cache/lineage-cache.json") == "cache/lineage-cache.json"


# =============================================================================
# Test: build_cache_key / arn_resource_id
# =============================================================================

class TestBuildCacheKey:
    """Tests for build_cache_key function."""

    def test_appends_json_extension(self):
        assert build_cache_key("cache", "dataset") == "cache/dataset.json"

    def test_keeps_existing_extension(self):
        assert build_cache_key("cache", "lineage-cache.json") == "cache/lineage-cache.json"

    def test_strips_prefix_slashes(self):
        assert build_cache_key("/cache/", "metadata") == "cache/metadata.json"

    def test_empty_prefix(self):
        assert build_cache_key("", "metadata") == "metadata.json"


class TestArnResourceId:
    """Tests for arn_resource_id function."""

    def test_last_segment(self):
        assert arn_resource_id("arn:aws:quicksight:us-east-1:123:analysis/abc-123") == "abc-123"

    def test_trailing_slash(self):
        assert arn_resource_id("arn:aws:quicksight:us-east-1:123:analysis/abc-123/") == "abc-123"

    def test_plain_id(self):
        assert arn_resource_id("abc-123") == "abc-123"
