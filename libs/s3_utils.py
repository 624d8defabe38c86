# =============================================================================
# S3 Key Utilities
# =============================================================================
# Shared helpers for parsing S3 paths and building object keys for the
# metadata bucket.
# =============================================================================

"""
S3 key utilities for the metadata cache.

This module provides functions for:
- Parsing S3 paths into bucket and key components
- Extracting keys from S3 paths
- Building cache document keys
- Extracting resource ids from ARNs
"""

from typing import Tuple

__all__ = [
    "parse_s3_path",
    "extract_s3_key",
    "build_cache_key",
    "arn_resource_id",
]


def parse_s3_path(s3_path: str) -> Tuple[str, str]:
    """
    Parse S3 path into bucket and key components.

    Args:
        s3_path: Full S3 path (e.g., "s3://asset-metadata/cache/dataset.json")

    Returns:
        Tuple of (bucket, key) e.g., ("asset-metadata", "cache/dataset.json")

    Raises:
        ValueError: If path is not valid s3:// format or missing key

    Examples:
        >>> parse_s3_path("s3://asset-metadata/cache/dataset.json")
        ('asset-metadata', 'cache/dataset.json')
    """
    if not s3_path.startswith("s3://"):
        raise ValueError(
            f"Invalid S3 path format: '{s3_path}'. Must start with 's3://'"
        )

    path_without_prefix = s3_path[5:]  # Remove "s3://"
    parts = path_without_prefix.split("/", 1)

    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(
            f"Invalid S3 path format: '{s3_path}'. Expected 's3://bucket/key'"
        )

    return parts[0], parts[1]


def extract_s3_key(s3_path: str) -> str:
    """
    Extract the key portion from an S3 path.

    For paths that are already keys (not s3:// format), returns them unchanged.

    Examples:
        >>> extract_s3_key("s3://asset-metadata/cache/lineage-cache.json")
        'cache/lineage-cache.json'
        >>> extract_s3_key("cache/lineage-cache.json")
        'cache/lineage-cache.json'
    """
    if s3_path.startswith("s3://"):
        _, key = parse_s3_path(s3_path)
        return key
    return s3_path


def build_cache_key(prefix: str, name: str) -> str:
    """
    Build the key of a JSON cache document.

    Examples:
        >>> build_cache_key("cache", "dataset")
        'cache/dataset.json'
        >>> build_cache_key("cache/", "lineage-cache.json")
        'cache/lineage-cache.json'
    """
    if not name.endswith(".json"):
        name = f"{name}.json"
    prefix = prefix.strip("/")
    if not prefix:
        return name
    return f"{prefix}/{name}"


def arn_resource_id(arn: str) -> str:
    """
    Return the resource id (last path segment) of an ARN.

    Examples:
        >>> arn_resource_id("arn:aws:quicksight:us-east-1:123:analysis/abc-123")
        'abc-123'
        >>> arn_resource_id("abc-123")
        'abc-123'
    """
    return arn.rstrip("/").split("/")[-1]
