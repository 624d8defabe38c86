# =============================================================================
# Metadata Cache Resource - Cache Service and Lineage Builder Factory
# =============================================================================
# Provides configured CacheService / LineageGraphBuilder instances to ops.
# Every op run builds its own service and closes it when done.
# =============================================================================

from dagster import ConfigurableResource
from pydantic import Field

from libs.models import CacheSettings, MinIOSettings
from services.cache import CacheService
from services.lineage import LineageGraphBuilder


class MetadataCacheResource(ConfigurableResource):
    """
    Dagster resource for the tiered metadata cache.

    Configuration matches MinIOSettings and CacheSettings from libs.models.config.

    Attributes:
        endpoint: MinIO server endpoint (host:port)
        access_key: Access key for authentication
        secret_key: Secret key for authentication
        use_ssl: Whether to use SSL/TLS (default: False)
        metadata_bucket: Bucket holding cache documents (default: "asset-metadata")
        cache_prefix: Key prefix for cache documents (default: "cache")
        host_memory_mb: Host memory used to size the memory tier (default: 512)
        memory_ttl_seconds: Memory tier entry lifetime (default: 600)
        lineage_ttl_seconds: Lifetime of the in-process lineage cache (default: 1800)
        lineage_concurrency: Relationship extraction worker pool size (default: 20)
        default_page_size: Page size when callers omit one (default: 100)
        flat_file_match_window_seconds: Flat-file datasource match window (default: 120)
    """

    endpoint: str = Field(..., description="MinIO server endpoint (host:port)")
    access_key: str = Field(..., description="Access key for authentication")
    secret_key: str = Field(..., description="Secret key for authentication")
    use_ssl: bool = Field(False, description="Whether to use SSL/TLS")
    metadata_bucket: str = Field("asset-metadata", description="Bucket holding cache documents")
    cache_prefix: str = Field("cache", description="Key prefix for cache documents")
    host_memory_mb: int = Field(512, description="Host memory in MB (sizes the memory tier)")
    memory_ttl_seconds: float = Field(600, description="Memory tier entry lifetime")
    lineage_ttl_seconds: float = Field(1800, description="In-process lineage cache lifetime")
    lineage_concurrency: int = Field(20, description="Relationship extraction worker pool size")
    default_page_size: int = Field(100, description="Page size when callers omit one")
    flat_file_match_window_seconds: float = Field(
        120, description="Flat-file datasource match window"
    )

    def minio_settings(self) -> MinIOSettings:
        return MinIOSettings(
            endpoint=self.endpoint,
            access_key=self.access_key,
            secret_key=self.secret_key,
            use_ssl=self.use_ssl,
            metadata_bucket=self.metadata_bucket,
        )

    def cache_settings(self) -> CacheSettings:
        return CacheSettings(
            cache_prefix=self.cache_prefix,
            host_memory_mb=self.host_memory_mb,
            memory_ttl_seconds=self.memory_ttl_seconds,
            lineage_ttl_seconds=self.lineage_ttl_seconds,
            lineage_concurrency=self.lineage_concurrency,
            default_page_size=self.default_page_size,
            flat_file_match_window_seconds=self.flat_file_match_window_seconds,
        )

    def build_cache_service(self) -> CacheService:
        """
        Create a CacheService backed by the configured MinIO bucket.

        The caller owns the service and must close() it.
        """
        return CacheService.from_settings(self.minio_settings(), self.cache_settings())

    def build_lineage_builder(self, cache_service: CacheService) -> LineageGraphBuilder:
        """Create a LineageGraphBuilder reading from the given cache service."""
        return LineageGraphBuilder.from_cache_service(cache_service)
