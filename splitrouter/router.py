"""Request pipeline: single-path quotes and multi-path split quotes.

Single path:
    cached routes -> cost -> sort by output -> tag best -> truncate -> USD

Multi path:
    single-path quote -> gain / yield / symbol annotation -> select top
    routes -> build trade tree -> prune -> cost the split -> USD
"""

from __future__ import annotations

import time
from dataclasses import asdict

import structlog

from splitrouter.config import DEFAULT_ROUTER_CONFIG, RouterConfig
from splitrouter.models.result import MultiPathResult, RouteResult, RouteStats, TradeYield
from splitrouter.models.route import Route, Segment, route_path
from splitrouter.models.types import normalize_id
from splitrouter.pools.pricing import ReferencePricing
from splitrouter.pools.registry import PoolDataSource, PoolRegistry, TokenRegistry
from splitrouter.routing.annotation import (
    annotate_routes_with_gain_to_dest,
    annotate_routes_with_symbols,
    annotate_routes_with_usd,
    annotate_routes_with_yield_to_dest,
    prune_routes,
)
from splitrouter.routing.cache import RouteCache
from splitrouter.routing.graph import PoolGraph
from splitrouter.routing.pruning import prune_duplicate_pools, prune_local_high_confidence
from splitrouter.routing.quoting import PricingContext, RefreshPolicy, cost_routes
from splitrouter.routing.tree import (
    annotate_trade_tree_usd,
    build_trade_tree,
    cost_trade_tree,
    get_num_routes,
    multi_path_yield,
    tree_to_dict,
)

logger = structlog.get_logger()


def _dst_amount(route: Route) -> float:
    return float(route[-1].dst_amount) if route and route[-1].dst_amount else 0.0


def _route_text(route: Route, tokens: TokenRegistry) -> str:
    return " -> ".join(tokens.get_symbol(token) or token for token in route_path(route))


def _route_yield(route: Route | None) -> TradeYield:
    if not route:
        return TradeYield()
    last = route[-1]
    return TradeYield(
        usd=float(last.dst_usd) if last.dst_usd else 0.0,
        token=float(last.dst_amount) if last.dst_amount else 0.0,
    )


class MultiPathRouter:
    """Quotes trades against a pool snapshot.

    Args:
        pools: Pool registry; reserves are refreshed in place
        tokens: Token registry
        source: Upstream pool data for refreshes (None: use snapshot as is)
        config: Router configuration
        pricing: Reference pricing for USD estimates (default: built from pools)
    """

    def __init__(
        self,
        pools: PoolRegistry,
        tokens: TokenRegistry,
        source: PoolDataSource | None = None,
        config: RouterConfig = DEFAULT_ROUTER_CONFIG,
        pricing: ReferencePricing | None = None,
    ) -> None:
        self.config = config
        self.context = PricingContext(
            pools=pools,
            tokens=tokens,
            source=source,
            pricing=pricing if pricing is not None else ReferencePricing.from_registry(pools),
        )
        self.graph = PoolGraph.from_registry(pools)
        self.cache = RouteCache(self.graph, config=config)

    def rebuild_graph(self) -> None:
        """Rebuild the graph from the registry, dropping cached routes."""
        self.graph = PoolGraph.from_registry(self.context.pools)
        self.cache.set_graph(self.graph)

    def default_refresh(self) -> RefreshPolicy:
        return RefreshPolicy(max_age_ms=self.config.avg_block_ms)

    def _preferred_route(self, path: list[str]) -> Route | None:
        """Build a route along a token path using the first pool of each hop."""
        route: Route = []
        for src, dst in zip(path, path[1:]):
            edge = self.graph.edge(src, dst)
            if edge is None or not edge.pool_ids:
                logger.error("preferred_route_unbuildable", src=src, dst=dst)
                return None
            if len(edge.pool_ids) != 1:
                logger.warning("preferred_route_pool_ambiguous", src=src, dst=dst, pools=len(edge.pool_ids))
            route.append(
                Segment(src=src, dst=dst, pool_id=edge.pool_ids[0], is_preferred_external_route=True)
            )
        return route

    def _tag_preferred_route(self, routes: list[Route], preferred_path: list[str]) -> bool:
        """Tag the route following preferred_path, adding it if missing."""
        path = [normalize_id(token) for token in preferred_path]
        for route in routes:
            if route_path(route) == path:
                for seg in route:
                    seg.is_preferred_external_route = True
                return True

        logger.warning("preferred_route_not_cached", path=path)
        preferred = self._preferred_route(path)
        if preferred is None:
            return False
        routes.append(preferred)
        return True

    async def _single_path(
        self,
        src: str,
        dst: str,
        amount: str,
        max_hops: int | None,
        max_impact: float | None,
        max_results: int | None,
        refresh: RefreshPolicy | None,
        preferred_path: list[str] | None,
    ) -> tuple[list[Route], RouteStats]:
        stats = RouteStats()
        refresh = refresh if refresh is not None else self.default_refresh()
        max_impact = max_impact if max_impact is not None else self.config.max_impact_percent
        max_results = max_results if max_results is not None else self.config.max_results

        routes = self.cache.get_routes(
            src, dst, max_hops=max_hops if max_hops is not None else self.config.max_hops
        )
        stats.routes_found = len(routes)
        if preferred_path:
            stats.preferred_route_found = self._tag_preferred_route(routes, preferred_path)

        costed = await cost_routes(routes, amount, max_impact, self.context, refresh)
        # Stable sort keeps search order (fewest hops first) among equal outputs
        costed.sort(key=_dst_amount, reverse=True)
        stats.routes_meeting_criteria = len(costed)

        if costed:
            for seg in costed[0]:
                seg.is_best = True

        selected = costed[:max_results]
        await annotate_routes_with_usd(selected, self.context, refresh)
        return selected, stats

    async def quote_single_path(
        self,
        src: str,
        dst: str,
        amount: str,
        max_hops: int | None = None,
        max_impact: float | None = None,
        max_results: int | None = None,
        refresh: RefreshPolicy | None = None,
        preferred_path: list[str] | None = None,
    ) -> RouteResult:
        """Quote every route from src to dst, best output first.

        Args:
            src: Source token id
            dst: Destination token id
            amount: Amount of src to trade (human units)
            max_hops: Hop limit (default: config.max_hops)
            max_impact: Per-hop impact ceiling in percent
            max_results: Number of routes returned
            refresh: Pool freshness policy (default: refresh data older than
                one block)
            preferred_path: Token path of an externally suggested route to
                tag (and add if the search did not find it)
        """
        start = time.monotonic()
        routes, stats = await self._single_path(
            src, dst, amount, max_hops, max_impact, max_results, refresh, preferred_path
        )
        logger.info(
            "single_path_quoted",
            src=src,
            dst=dst,
            amount=amount,
            routes=len(routes),
            elapsed_ms=round((time.monotonic() - start) * 1000),
        )
        preferred = next((r for r in routes if r and r[0].is_preferred_external_route), None)
        return RouteResult(
            routes=[[asdict(seg) for seg in route] for route in routes],
            preferred_route=_route_text(preferred, self.context.tokens) if preferred else None,
            route_stats=stats,
        )

    async def quote_multi_path(
        self,
        src: str,
        dst: str,
        amount: str,
        max_hops: int | None = None,
        max_impact: float | None = None,
        max_results: int | None = None,
        refresh: RefreshPolicy | None = None,
        preferred_path: list[str] | None = None,
        max_paths: int | None = None,
    ) -> MultiPathResult:
        """Quote a trade split across several routes.

        Accepts the same arguments as quote_single_path, plus max_paths,
        the number of best single-path routes considered for the split
        (default: config.max_concurrent_paths).
        """
        start = time.monotonic()
        routes, stats = await self._single_path(
            src, dst, amount, max_hops, max_impact, max_results, refresh, preferred_path
        )
        annotate_routes_with_gain_to_dest(routes)
        annotate_routes_with_yield_to_dest(routes)
        annotate_routes_with_symbols(self.context.tokens, routes)

        src_norm, dst_norm = normalize_id(src), normalize_id(dst)
        result = MultiPathResult(
            src=src_norm,
            src_symbol=self.context.tokens.get_symbol(src_norm),
            dst=dst_norm,
            dst_symbol=self.context.tokens.get_symbol(dst_norm),
            input_amount=amount,
            route_stats=stats,
        )

        single_path_tree = build_trade_tree(routes)
        if single_path_tree is not None:
            result.single_path_tree = tree_to_dict(single_path_tree)
            result.preferred_yield = _route_yield(
                next((r for r in routes if r and r[0].is_preferred_external_route), None)
            )
            result.single_path_yield = _route_yield(routes[0])

        selected = prune_routes(
            routes,
            max_routes=max_paths if max_paths is not None else self.config.max_concurrent_paths,
            min_gain_to_dest=0.0,
        )
        stats.mp_routes_meeting_criteria = len(selected)

        tree = build_trade_tree(selected)
        if tree is not None:
            prune_local_high_confidence(tree, self.config.local_high_gain)
            prune_duplicate_pools(tree, self.config.duplicate_pool_max_impact)
            stats.mp_routes_after_pruning = get_num_routes(tree)

            # Pools were refreshed while costing the single-path routes
            trade_id = cost_trade_tree(tree, amount, self.context, self.config.split_exponent)
            await annotate_trade_tree_usd(
                tree, self.context, refresh if refresh is not None else self.default_refresh()
            )
            result.multi_path_tree = tree_to_dict(tree)
            result.multi_path_yield = multi_path_yield(tree, trade_id)

        logger.info(
            "multi_path_quoted",
            src=src_norm,
            dst=dst_norm,
            amount=amount,
            single_path_yield=result.single_path_yield.token,
            multi_path_yield=result.multi_path_yield.token,
            routes=stats.mp_routes_after_pruning,
            elapsed_ms=round((time.monotonic() - start) * 1000),
        )
        return result


__all__ = ["MultiPathRouter"]
