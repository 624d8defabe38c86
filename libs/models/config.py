# =============================================================================
# Configuration Models Module
# =============================================================================
# Provides Pydantic Settings models for the metadata cache:
# - MinIOSettings: S3-compatible object storage holding the cache documents
# - CacheSettings: memory tier, lineage cache and query defaults
# =============================================================================

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from libs.s3_utils import build_cache_key

from .asset import AssetType

__all__ = [
    "MinIOSettings",
    "CacheSettings",
]


# =============================================================================
# MinIO Settings (S3-Compatible Object Storage)
# =============================================================================

class MinIOSettings(BaseSettings):
    """
    Configuration for MinIO (S3-compatible object storage).

    Maps environment variables:
    - MINIO_ENDPOINT → endpoint
    - MINIO_ROOT_USER → access_key
    - MINIO_ROOT_PASSWORD → secret_key
    - MINIO_USE_SSL → use_ssl
    - MINIO_METADATA_BUCKET → metadata_bucket

    Attributes:
        endpoint: MinIO server endpoint (host:port)
        access_key: Access key (maps from MINIO_ROOT_USER)
        secret_key: Secret key (maps from MINIO_ROOT_PASSWORD)
        use_ssl: Whether to use SSL/TLS (default: False)
        metadata_bucket: Bucket holding cache documents (default: "asset-metadata")
    """

    endpoint: str = Field(..., validation_alias="MINIO_ENDPOINT", description="MinIO server endpoint (host:port)")
    access_key: str = Field(..., validation_alias="MINIO_ROOT_USER", description="Access key (maps from MINIO_ROOT_USER)")
    secret_key: str = Field(..., validation_alias="MINIO_ROOT_PASSWORD", description="Secret key (maps from MINIO_ROOT_PASSWORD)")
    use_ssl: bool = Field(False, validation_alias="MINIO_USE_SSL", description="Whether to use SSL/TLS")
    metadata_bucket: str = Field("asset-metadata", validation_alias="MINIO_METADATA_BUCKET", description="Metadata bucket name")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore unrelated env vars from shared .env files
        populate_by_name=True,
    )


# =============================================================================
# Cache Settings
# =============================================================================

class CacheSettings(BaseSettings):
    """
    Configuration for the tiered metadata cache and the lineage builder.

    Maps environment variables:
    - CACHE_PREFIX → cache_prefix
    - CACHE_MEMORY_TTL_SECONDS → memory_ttl_seconds
    - HOST_MEMORY_MB → host_memory_mb
    - LINEAGE_CACHE_TTL_SECONDS → lineage_ttl_seconds
    - LINEAGE_CONCURRENCY → lineage_concurrency
    - CACHE_DEFAULT_PAGE_SIZE → default_page_size
    - FLAT_FILE_MATCH_WINDOW_SECONDS → flat_file_match_window_seconds

    Attributes:
        cache_prefix: Key prefix for cache documents (default: "cache")
        memory_ttl_seconds: Memory tier entry lifetime (default: 600)
        host_memory_mb: Host memory used to size the memory tier (default: 512)
        lineage_ttl_seconds: Lifetime of the in-process lineage cache (default: 1800)
        lineage_concurrency: Worker pool size for relationship extraction (default: 20)
        default_page_size: Page size when callers omit one (default: 100)
        flat_file_match_window_seconds: Time window for flat-file datasource matching (default: 120)
    """

    cache_prefix: str = Field("cache", validation_alias="CACHE_PREFIX", description="Key prefix for cache documents")
    memory_ttl_seconds: float = Field(600, gt=0, validation_alias="CACHE_MEMORY_TTL_SECONDS", description="Memory tier TTL")
    host_memory_mb: int = Field(512, gt=0, validation_alias="HOST_MEMORY_MB", description="Host memory in MB")
    lineage_ttl_seconds: float = Field(1800, gt=0, validation_alias="LINEAGE_CACHE_TTL_SECONDS", description="Lineage cache TTL")
    lineage_concurrency: int = Field(20, ge=1, validation_alias="LINEAGE_CONCURRENCY", description="Relationship extraction worker pool size")
    default_page_size: int = Field(100, ge=1, validation_alias="CACHE_DEFAULT_PAGE_SIZE", description="Default page size")
    flat_file_match_window_seconds: float = Field(120, gt=0, validation_alias="FLAT_FILE_MATCH_WINDOW_SECONDS", description="Flat-file match window")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore unrelated env vars from shared .env files
        populate_by_name=True,
    )

    @property
    def lineage_document_key(self) -> str:
        """Key of the persisted lineage document."""
        return build_cache_key(self.cache_prefix, "lineage-cache")

    @property
    def metadata_document_key(self) -> str:
        """Key of the cache metadata document."""
        return build_cache_key(self.cache_prefix, "metadata")

    def type_document_key(self, asset_type: AssetType) -> str:
        """
        Key of the per-type cache document.

        Examples:
            >>> CacheSettings().type_document_key(AssetType.DATASET)
            'cache/dataset.json'
        """
        return build_cache_key(self.cache_prefix, asset_type.value)
