"""Costing of concrete routes.

Each segment of a route is priced as a constant-product swap, chaining
the output of hop n into hop n+1. A route is dropped as a whole when any
hop fails to price or exceeds the caller's impact ceiling.

Before costing, stale pool data referenced by the candidate routes can
be refreshed in a single batched fetch through a PoolDataSource.
"""

from __future__ import annotations

import time
import warnings
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from splitrouter.amm.uniswap_v2 import SwapEstimate, UniswapV2, uniswap_v2
from splitrouter.constants import AVG_BLOCK_MS, NO_BLOCK_NUM
from splitrouter.errors import EstimationError, StalenessWarning
from splitrouter.models.pool import Pool
from splitrouter.models.route import Route
from splitrouter.pools.pricing import ReferencePricing
from splitrouter.pools.registry import PoolDataSource, PoolRegistry, TokenRegistry

logger = structlog.get_logger()


def compute_trade_estimate(
    pool: Pool | None,
    tokens: TokenRegistry,
    token_in: str,
    amount: str,
    amm: UniswapV2 = uniswap_v2,
) -> SwapEstimate:
    """Price an exact-input swap of one hop.

    Raises:
        EstimationError: If the pool is missing or cannot price the input
    """
    return amm.estimate(pool, tokens, token_in, amount)


@dataclass
class PricingContext:
    """Collaborators needed to price routes.

    Attributes:
        pools: Pool registry (reserves are refreshed in place)
        tokens: Token registry (decimals and symbols)
        source: Upstream pool data source; None disables refresh
        pricing: Reference-asset lookup for USD estimates, if available
        amm: Constant-product math
    """

    pools: PoolRegistry
    tokens: TokenRegistry
    source: PoolDataSource | None = None
    pricing: ReferencePricing | None = None
    amm: UniswapV2 = uniswap_v2

    def estimate(self, pool_id: str, token_in: str, amount: str) -> SwapEstimate:
        """Price one hop.

        Raises:
            EstimationError: If the hop cannot be priced
        """
        pool = self.pools.get_pool(pool_id)
        if pool is None:
            raise EstimationError(f"Pool {pool_id} not found", pool_id=pool_id)
        return compute_trade_estimate(pool, self.tokens, token_in, amount, self.amm)


@dataclass(frozen=True)
class RefreshPolicy:
    """How pool data freshness is handled before pricing.

    Attributes:
        update_pool_data: Refresh pools older than max_age_ms
        block_number: Pin pool data to this block (NO_BLOCK_NUM = not pinned);
            takes precedence over update_pool_data
        max_age_ms: Freshness window (default: one average block)
    """

    update_pool_data: bool = True
    block_number: int = NO_BLOCK_NUM
    max_age_ms: int = AVG_BLOCK_MS


DEFAULT_REFRESH = RefreshPolicy()
NO_REFRESH = RefreshPolicy(update_pool_data=False)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _route_pool_ids(routes: Iterable[Route]) -> set[str]:
    return {seg.pool_id for route in routes for seg in route}


def filter_pool_ids_of_age(
    registry: PoolRegistry,
    pool_ids: Iterable[str],
    age_ms: int = AVG_BLOCK_MS,
    now_ms: int | None = None,
) -> set[str]:
    """Pool ids whose data is at least age_ms old (or was never refreshed)."""
    now_ms = _now_ms() if now_ms is None else now_ms
    stale: set[str] = set()
    for pool_id in pool_ids:
        pool = registry.get_pool(pool_id)
        if pool is not None and pool.updated_at_ms is not None and now_ms - pool.updated_at_ms < age_ms:
            continue
        stale.add(pool_id)
    return stale


def filter_pool_ids_not_at_block(
    registry: PoolRegistry, pool_ids: Iterable[str], block_number: int
) -> set[str]:
    """Pool ids whose data is not pinned to block_number."""
    result: set[str] = set()
    for pool_id in pool_ids:
        pool = registry.get_pool(pool_id)
        if pool is not None and pool.updated_at_block == block_number:
            continue
        result.add(pool_id)
    return result


def route_pool_ids_of_age(
    registry: PoolRegistry,
    routes: Iterable[Route],
    age_ms: int = AVG_BLOCK_MS,
    now_ms: int | None = None,
) -> set[str]:
    """Stale pool ids referenced by any segment of the routes."""
    return filter_pool_ids_of_age(registry, _route_pool_ids(routes), age_ms, now_ms)


def route_pool_ids_not_at_block(
    registry: PoolRegistry, routes: Iterable[Route], block_number: int
) -> set[str]:
    """Pool ids referenced by the routes that are not pinned to block_number."""
    return filter_pool_ids_not_at_block(registry, _route_pool_ids(routes), block_number)


async def refresh_pools(
    registry: PoolRegistry,
    source: PoolDataSource,
    pool_ids: set[str],
    block_number: int = NO_BLOCK_NUM,
) -> int:
    """Fetch the given pools in one batch and apply them in place.

    Returns:
        Number of pools updated
    """
    if not pool_ids:
        return 0
    start = time.monotonic()
    fresh = await source.fetch_pools(pool_ids, block_number)
    updated = registry.update_pools(fresh, _now_ms(), block_number)
    logger.debug(
        "pools_refreshed",
        requested=len(pool_ids),
        updated=updated,
        block_number=block_number if block_number != NO_BLOCK_NUM else None,
        elapsed_ms=round((time.monotonic() - start) * 1000),
    )
    return updated


async def refresh_pool_ids(context: PricingContext, pool_ids: set[str], policy: RefreshPolicy) -> None:
    """Bring the given pools up to date according to policy.

    When refresh is disabled and some pools are stale, a StalenessWarning
    is issued and the stale data is used. Without a data source there is
    nothing to refresh from and the snapshot is used as is.
    """
    if policy.block_number != NO_BLOCK_NUM and context.source is not None:
        to_update = filter_pool_ids_not_at_block(context.pools, pool_ids, policy.block_number)
        await refresh_pools(context.pools, context.source, to_update, policy.block_number)
        return

    stale = filter_pool_ids_of_age(context.pools, pool_ids, policy.max_age_ms)
    if not stale:
        return
    if policy.update_pool_data:
        if context.source is None:
            logger.debug("pool_refresh_skipped", reason="no data source", stale_pools=len(stale))
            return
        await refresh_pools(context.pools, context.source, stale)
        return

    logger.warning("stale_pool_data_used", stale_pools=len(stale), max_age_ms=policy.max_age_ms)
    warnings.warn(
        f"{len(stale)} pools older than {policy.max_age_ms} ms used without refresh",
        StalenessWarning,
        stacklevel=3,
    )


def cost_route(
    route: Route,
    amount: str,
    max_impact_percent: float,
    context: PricingContext,
    estimate_cache: dict[tuple[str, str, str], SwapEstimate] | None = None,
) -> Route | None:
    """Price every segment of a route, annotating it in place.

    Args:
        route: Concrete route to price
        amount: Input amount of the route's source token (human units)
        max_impact_percent: Per-hop impact ceiling in percent
        context: Pricing collaborators
        estimate_cache: Optional memo keyed by (input amount, src, pool id)

    Returns:
        The annotated route, or None if a hop failed or exceeded the ceiling

    Raises:
        EstimationError: If a hop cannot be priced
    """
    input_amount = amount
    for seg in route:
        key = (input_amount, seg.src, seg.pool_id)
        estimate = estimate_cache.get(key) if estimate_cache is not None else None
        if estimate is None:
            estimate = context.estimate(seg.pool_id, seg.src, input_amount)
            if estimate_cache is not None:
                estimate_cache[key] = estimate

        if float(estimate.impact) > max_impact_percent:
            return None

        seg.impact = estimate.impact
        seg.src_amount = estimate.amount_in
        seg.dst_amount = estimate.amount_out
        input_amount = estimate.amount_out
    return route


async def cost_routes(
    routes: list[Route],
    amount: str,
    max_impact_percent: float,
    context: PricingContext,
    refresh: RefreshPolicy = DEFAULT_REFRESH,
    cache_estimates: bool = True,
) -> list[Route]:
    """Price routes and keep those that price within the impact ceiling.

    Stale pools referenced by any route are refreshed first, in one
    batched fetch. Routes that fail to price are dropped and logged;
    surviving routes are annotated in place and returned in input order.
    """
    await refresh_pool_ids(context, _route_pool_ids(routes), refresh)

    start = time.monotonic()
    estimate_cache: dict[tuple[str, str, str], SwapEstimate] | None = (
        {} if cache_estimates else None
    )
    costed: list[Route] = []
    failed = 0
    exceeded = 0
    for route in routes:
        try:
            result = cost_route(route, amount, max_impact_percent, context, estimate_cache)
        except EstimationError as err:
            failed += 1
            logger.debug(
                "route_estimation_failed",
                pool=err.pool_id,
                error=str(err),
                route=[seg.pool_id for seg in route],
            )
            continue
        if result is None:
            exceeded += 1
            continue
        costed.append(result)

    logger.debug(
        "routes_costed",
        submitted=len(routes),
        costed=len(costed),
        failed=failed,
        exceeded_impact=exceeded,
        cached_estimates=len(estimate_cache) if estimate_cache is not None else 0,
        elapsed_ms=round((time.monotonic() - start) * 1000),
    )
    return costed


__all__ = [
    "compute_trade_estimate",
    "PricingContext",
    "RefreshPolicy",
    "DEFAULT_REFRESH",
    "NO_REFRESH",
    "filter_pool_ids_of_age",
    "filter_pool_ids_not_at_block",
    "route_pool_ids_of_age",
    "route_pool_ids_not_at_block",
    "refresh_pools",
    "refresh_pool_ids",
    "cost_route",
    "cost_routes",
]
