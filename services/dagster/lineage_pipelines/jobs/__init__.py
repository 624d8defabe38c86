"""Dagster Jobs - Executable Workflows."""

from .rebuild_lineage_job import rebuild_lineage_job

__all__ = ["rebuild_lineage_job"]
