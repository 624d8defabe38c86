"""Dagster Definitions - Repository Configuration.

Defines jobs, resources, and schedules for the lineage refresh pipeline.
"""

from dagster import Definitions, EnvVar

from .jobs import rebuild_lineage_job
from .resources import MetadataCacheResource
from .schedules import lineage_refresh_schedule


# =============================================================================
# Definitions
# =============================================================================

defs = Definitions(
    jobs=[rebuild_lineage_job],
    resources={
        "metadata_cache": MetadataCacheResource(
            endpoint=EnvVar("MINIO_ENDPOINT"),
            access_key=EnvVar("MINIO_ROOT_USER"),
            secret_key=EnvVar("MINIO_ROOT_PASSWORD"),
            use_ssl=False,
            metadata_bucket="asset-metadata",
        ),
    },
    schedules=[lineage_refresh_schedule],
)
