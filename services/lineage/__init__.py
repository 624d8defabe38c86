# =============================================================================
# Asset Lineage Graph
# =============================================================================
# Builds the asset dependency graph from the metadata cache. Depends on the
# cache package's read interface only.
# =============================================================================

from .builder import BuildPhase, LineageBuildResult, LineageGraphBuilder
from .graph import LineageGraph

__all__ = [
    "BuildPhase",
    "LineageBuildResult",
    "LineageGraph",
    "LineageGraphBuilder",
]
