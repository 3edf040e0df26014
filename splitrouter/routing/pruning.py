"""Trade tree pruning strategies.

Each pass picks route ids to discard and removes them with
prune_tree_route, which also detaches nodes left without routes. The
passes are independent and may be combined in any order.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from splitrouter.constants import DUPLICATE_POOL_MAX_IMPACT, GLOBAL_HIGH_GAIN, LOCAL_HIGH_GAIN
from splitrouter.routing.tree import TradeTree, prune_tree_route

logger = structlog.get_logger()


@dataclass
class _PoolLocation:
    max_gain: float
    impact: float
    route_ids: list[int]
    level: int


def _remove_routes(tree: TradeTree, route_ids: set[int]) -> set[int]:
    for route_id in sorted(route_ids):
        prune_tree_route(tree, route_id)
    return route_ids


def prune_duplicate_pools(
    tree: TradeTree, max_impact_percent: float = DUPLICATE_POOL_MAX_IMPACT
) -> set[int]:
    """Stop a multi-path trade from drawing on one pool in several places.

    Pricing treats each tree location independently, so a pool used at
    two locations would have its liquidity counted twice. For every pool
    used at more than one location, the location whose routes reach the
    best total gain is kept; every other location with an impact above
    ``max_impact_percent`` loses all of its routes.

    Returns:
        Route ids removed
    """
    total_gains = tree.total_route_gains()

    locations: dict[str, list[_PoolLocation]] = {}
    for index, level in tree.walk_bfs():
        node = tree.nodes[index]
        if node.pool_id is None or not node.gain_to_dest:
            continue
        route_ids = list(node.gain_to_dest)
        locations.setdefault(node.pool_id, []).append(
            _PoolLocation(
                max_gain=max(total_gains.get(r, 0.0) for r in route_ids),
                impact=float(node.impact) if node.impact else 0.0,
                route_ids=route_ids,
                level=level,
            )
        )

    prune: set[int] = set()
    for pool_id, pool_locations in locations.items():
        if len(pool_locations) <= 1:
            continue
        pool_locations.sort(key=lambda loc: loc.max_gain)
        # The last location has the best gain and is kept
        for loc in pool_locations[:-1]:
            if loc.impact > max_impact_percent:
                prune.update(loc.route_ids)
                logger.debug(
                    "duplicate_pool_routes_pruned",
                    pool=pool_id,
                    level=loc.level,
                    impact=loc.impact,
                    routes=loc.route_ids,
                )

    return _remove_routes(tree, prune)


def prune_global_high_confidence(tree: TradeTree, high_gain: float = GLOBAL_HIGH_GAIN) -> set[int]:
    """Keep only the best route when its total gain exceeds high_gain.

    Returns:
        Route ids removed
    """
    total_gains = tree.total_route_gains()
    if not total_gains:
        return set()

    best_route = max(total_gains, key=lambda r: total_gains[r])
    if total_gains[best_route] <= high_gain:
        return set()

    logger.debug("global_high_gain_route", route=best_route, gain_to_dest=total_gains[best_route])
    return _remove_routes(tree, {r for r in total_gains if r != best_route})


def prune_local_high_confidence(tree: TradeTree, high_gain: float = LOCAL_HIGH_GAIN) -> set[int]:
    """At each node, drop the routes competing with a route gaining over high_gain.

    Routes meeting at a node share the path up to it, so once one of them
    gains more than high_gain from there on, the others cannot beat it.

    Returns:
        Route ids removed
    """
    prune: set[int] = set()
    for index, level in tree.walk_bfs():
        route_gains: dict[int, float] = {}
        for child in tree.nodes[index].children:
            route_gains.update(tree.nodes[child].gain_to_dest)
        if not route_gains:
            continue

        best_route = max(route_gains, key=lambda r: route_gains[r])
        if route_gains[best_route] > high_gain:
            logger.debug(
                "local_high_gain_route",
                route=best_route,
                level=level,
                gain_to_dest=route_gains[best_route],
            )
            prune.update(r for r in route_gains if r != best_route)

    logger.debug("local_high_gain_prune", routes=len(prune))
    return _remove_routes(tree, prune)


__all__ = [
    "prune_duplicate_pools",
    "prune_global_high_confidence",
    "prune_local_high_confidence",
]
