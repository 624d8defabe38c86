# =============================================================================
# Lineage Ops - Cache Warm-Up and Lineage Rebuild
# =============================================================================
# Periodic refresh of the lineage snapshot: load every per-type cache
# document, then rebuild and re-persist the lineage document.
# =============================================================================

import asyncio
from typing import Any, Dict

from dagster import In, MetadataValue, Nothing, OpExecutionContext, Out, op

from libs.models import StatusFilter
from services.cache import CacheService
from services.lineage import LineageGraphBuilder


async def _warm_cache(cache_service: CacheService, log) -> Dict[str, int]:
    """
    Core logic for loading every asset type through the cache tiers.

    This function is extracted for easier unit testing without Dagster context.

    Args:
        cache_service: CacheService instance
        log: Logger instance (context.log)

    Returns:
        Entry count per asset type, plus "total"
    """
    snapshot = await cache_service.get_master_cache(status_filter=StatusFilter.ALL)
    counts = {asset_type.value: count for asset_type, count in snapshot.counts_by_type.items()}
    counts["total"] = sum(counts.values())

    log.info(f"Loaded {counts['total']} cached assets (cache version {snapshot.version})")
    for asset_type, count in counts.items():
        if asset_type != "total":
            log.debug(f"  {asset_type}: {count}")
    return counts


async def _rebuild_lineage(builder: LineageGraphBuilder, log) -> Dict[str, Any]:
    """
    Core logic for a forced lineage rebuild.

    This function is extracted for easier unit testing without Dagster context.

    Args:
        builder: LineageGraphBuilder instance
        log: Logger instance (context.log)

    Returns:
        Summary dict with asset_count, relationship_count, transitive_count,
        skipped_assets, failed_assets and persisted

    Raises:
        Exception: If the build itself failed (a failed persist is reported, not raised)
    """
    log.info("Rebuilding lineage graph")
    result = await builder.rebuild()

    summary = {
        "asset_count": result.asset_count,
        "relationship_count": result.relationship_count,
        "transitive_count": result.transitive_count,
        "skipped_assets": result.skipped_assets,
        "failed_assets": result.failed_assets,
        "persisted": result.persisted,
    }

    if result.persisted:
        log.info(
            f"Lineage rebuilt: {result.asset_count} assets, "
            f"{result.relationship_count} relationships"
        )
    else:
        log.warning(
            f"Lineage rebuilt ({result.asset_count} assets) but the lineage document "
            f"could not be saved; it will be retried on the next run"
        )
    if result.failed_assets:
        log.warning(f"{result.failed_assets} asset(s) failed relationship extraction")
    return summary


async def _run_with_service(cache_resource, coro_factory):
    cache_service = cache_resource.build_cache_service()
    try:
        await cache_service.store.ensure_bucket()
        return await coro_factory(cache_service)
    finally:
        cache_service.close()


@op(
    out=Out(dict),
    required_resource_keys={"metadata_cache"},
)
def warm_cache_op(context: OpExecutionContext) -> dict:
    """
    Load every per-type cache document, archived assets included.

    Fails the run early when the metadata bucket is unreachable, before the
    lineage rebuild starts.

    Returns:
        Entry count per asset type, plus "total"
    """
    cache_resource = context.resources.metadata_cache
    counts = asyncio.run(
        _run_with_service(
            cache_resource,
            lambda cache_service: _warm_cache(cache_service, context.log),
        )
    )

    context.add_output_metadata(
        {name: MetadataValue.int(count) for name, count in counts.items()}
    )
    return counts


@op(
    ins={"start_after": In(Nothing)},
    out=Out(dict),
    required_resource_keys={"metadata_cache"},
)
def rebuild_lineage_op(context: OpExecutionContext) -> dict:
    """
    Force a full lineage rebuild and persist the lineage document.

    Returns:
        Build summary (see _rebuild_lineage)
    """
    cache_resource = context.resources.metadata_cache
    summary = asyncio.run(
        _run_with_service(
            cache_resource,
            lambda cache_service: _rebuild_lineage(
                cache_resource.build_lineage_builder(cache_service), context.log
            ),
        )
    )

    context.add_output_metadata(
        {
            "asset_count": MetadataValue.int(summary["asset_count"]),
            "relationship_count": MetadataValue.int(summary["relationship_count"]),
            "transitive_count": MetadataValue.int(summary["transitive_count"]),
            "skipped_assets": MetadataValue.int(summary["skipped_assets"]),
            "failed_assets": MetadataValue.int(summary["failed_assets"]),
            "persisted": MetadataValue.bool(summary["persisted"]),
        }
    )
    return summary
