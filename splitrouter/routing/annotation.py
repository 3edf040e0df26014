"""Per-route annotation passes run after costing.

All passes mutate segments in place. Gain and yield are computed back to
front, so the first segment of a route carries the figure for the whole
route.
"""

from __future__ import annotations

import math

import structlog

from splitrouter.constants import MAX_SINGLE_PATH_ROUTES
from splitrouter.models.route import Route
from splitrouter.pools.registry import TokenRegistry
from splitrouter.routing.quoting import DEFAULT_REFRESH, PricingContext, RefreshPolicy, refresh_pool_ids

logger = structlog.get_logger()


def annotate_routes_with_gain_to_dest(routes: list[Route]) -> None:
    """Set each segment's gain_to_dest to the product of (1 - impact) through the route's end.

    Uncosted segments count as zero impact.
    """
    for route in routes:
        gain_to_dest = 1.0
        for seg in reversed(route):
            gain_to_dest *= 1.0 - seg.impact_fraction
            seg.gain_to_dest = gain_to_dest


def annotate_routes_with_yield_to_dest(routes: list[Route]) -> None:
    """Set each segment's yield_to_dest to final output per unit of segment input.

    Yield compares prices across routes where gain only reflects
    slippage. A segment with no (or zero) input amount gets NaN.
    """
    for route in routes:
        if not route:
            continue
        final_dst = float(route[-1].dst_amount) if route[-1].dst_amount else 0.0
        for seg in reversed(route):
            src = float(seg.src_amount) if seg.src_amount else 0.0
            seg.yield_to_dest = final_dst / src if src else math.nan


def annotate_routes_with_symbols(
    tokens: TokenRegistry, routes: list[Route], include_id_suffix: bool = False
) -> None:
    """Fill src_symbol / dst_symbol from the token registry.

    With include_id_suffix, the last four characters of the token id are
    appended, to tell apart tokens sharing a symbol.
    """
    for route in routes:
        for seg in route:
            seg.src_symbol = tokens.get_symbol(seg.src)
            seg.dst_symbol = tokens.get_symbol(seg.dst)
            if include_id_suffix:
                seg.src_symbol += f" ({seg.src[-4:]})"
                seg.dst_symbol += f" ({seg.dst[-4:]})"


async def annotate_routes_with_usd(
    routes: list[Route],
    context: PricingContext,
    refresh: RefreshPolicy = DEFAULT_REFRESH,
) -> None:
    """Fill src_usd / dst_usd on every costed segment.

    The reference pools needed for the estimates are refreshed first, in
    one batch, according to refresh.
    """
    pricing = context.pricing
    if pricing is None:
        logger.debug("usd_annotation_skipped", reason="no reference pricing")
        return

    await refresh_pool_ids(context, pricing.usd_pool_ids(routes), refresh)

    for route in routes:
        for seg in route:
            if seg.src_amount:
                seg.src_usd = pricing.estimate_usd(seg.src, seg.src_amount)
            if seg.dst_amount:
                seg.dst_usd = pricing.estimate_usd(seg.dst, seg.dst_amount)


def prune_routes(
    routes: list[Route],
    max_routes: int = MAX_SINGLE_PATH_ROUTES,
    min_gain_to_dest: float = 0.0,
) -> list[Route]:
    """Select the best routes to combine into a multi-path trade.

    Routes must already carry gain and yield annotations. Dropped:

    - empty routes and routes whose total gain is below min_gain_to_dest
    - routes whose yield, normalized to the best yield, is below their
      gain; their pricing is inconsistent with their slippage

    Returns:
        At most max_routes routes, highest total gain first
    """
    max_yield = 0.0
    for route in routes:
        if route and route[0].yield_to_dest is not None and not math.isnan(route[0].yield_to_dest):
            max_yield = max(max_yield, route[0].yield_to_dest)

    kept: list[Route] = []
    for route in routes:
        if not route:
            continue
        first = route[0]
        total_gain = first.gain_to_dest or 0.0
        if total_gain < min_gain_to_dest:
            continue

        if max_yield > 0:
            route_yield = first.yield_to_dest
            normalized_yield = (
                route_yield / max_yield
                if route_yield is not None and not math.isnan(route_yield)
                else 0.0
            )
            if normalized_yield < total_gain:
                logger.warning(
                    "route_pruned_inconsistent_pricing",
                    normalized_yield=normalized_yield,
                    gain_to_dest=total_gain,
                    pools=[seg.pool_id for seg in route],
                )
                continue

        kept.append(route)

    kept.sort(key=lambda r: r[0].gain_to_dest or 0.0, reverse=True)
    return kept[:max_routes]


__all__ = [
    "annotate_routes_with_gain_to_dest",
    "annotate_routes_with_yield_to_dest",
    "annotate_routes_with_symbols",
    "annotate_routes_with_usd",
    "prune_routes",
]
