"""Dagster Resources - External Service Connections."""

from .metadata_cache_resource import MetadataCacheResource

__all__ = ["MetadataCacheResource"]
