"""Lineage refresh job (op-based)."""

from dagster import job

from ..ops import rebuild_lineage_op, warm_cache_op


@job(
    name="rebuild_lineage_job",
    description="Warms the metadata cache, then rebuilds and persists the lineage graph",
)
def rebuild_lineage_job():
    """
    Periodic lineage refresh triggered by lineage_refresh_schedule.

    Pipeline flow:
    1. warm_cache_op: Loads every per-type cache document (fails fast if the bucket is down)
    2. rebuild_lineage_op: Rebuilds the lineage graph and writes cache/lineage-cache.json
    """
    rebuild_lineage_op(start_after=warm_cache_op())
