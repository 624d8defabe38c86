"""Dagster Ops - Reusable Computation Units."""

from .lineage_ops import rebuild_lineage_op, warm_cache_op

__all__ = [
    "rebuild_lineage_op",
    "warm_cache_op",
]
