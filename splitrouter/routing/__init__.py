"""Route search, costing and multi-path splitting.

Module structure:
- graph.py: PoolGraph, one edge per token pair
- pathfinding.py: find_routes, depth-bounded search for stacked routes
- expansion.py: expand_routes, stacked routes to single-pool routes
- quoting.py: cost_routes, chained constant-product pricing and refresh
- annotation.py: gain / yield / symbol / USD passes and prune_routes
- tree.py: TradeTree build, split and costing
- pruning.py: trade tree pruning strategies
- cache.py: RouteCache for expanded routes
"""

from splitrouter.routing.annotation import (
    annotate_routes_with_gain_to_dest,
    annotate_routes_with_symbols,
    annotate_routes_with_usd,
    annotate_routes_with_yield_to_dest,
    prune_routes,
)
from splitrouter.routing.cache import RouteCache
from splitrouter.routing.expansion import expand_route, expand_routes
from splitrouter.routing.graph import PoolEdge, PoolGraph
from splitrouter.routing.pathfinding import SearchConstraints, find_routes, routes_to_string
from splitrouter.routing.pruning import (
    prune_duplicate_pools,
    prune_global_high_confidence,
    prune_local_high_confidence,
)
from splitrouter.routing.quoting import (
    DEFAULT_REFRESH,
    NO_REFRESH,
    PricingContext,
    RefreshPolicy,
    compute_trade_estimate,
    cost_routes,
)
from splitrouter.routing.tree import (
    TradeAllocation,
    TradeProportion,
    TradeTree,
    TradeTreeNode,
    annotate_trade_tree_usd,
    build_trade_tree,
    cost_trade_tree,
    get_trade_proportions,
)

__all__ = [
    "PoolEdge",
    "PoolGraph",
    "SearchConstraints",
    "find_routes",
    "routes_to_string",
    "expand_route",
    "expand_routes",
    "PricingContext",
    "RefreshPolicy",
    "DEFAULT_REFRESH",
    "NO_REFRESH",
    "compute_trade_estimate",
    "cost_routes",
    "annotate_routes_with_gain_to_dest",
    "annotate_routes_with_yield_to_dest",
    "annotate_routes_with_symbols",
    "annotate_routes_with_usd",
    "prune_routes",
    "TradeAllocation",
    "TradeProportion",
    "TradeTree",
    "TradeTreeNode",
    "build_trade_tree",
    "get_trade_proportions",
    "cost_trade_tree",
    "annotate_trade_tree_usd",
    "prune_duplicate_pools",
    "prune_global_high_confidence",
    "prune_local_high_confidence",
    "RouteCache",
]
