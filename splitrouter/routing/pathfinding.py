"""Depth-bounded route search over the pool graph.

Search produces stacked routes: each hop carries every pool id that
connects its two tokens instead of committing to one. This avoids
walking a true multigraph, where parallel pools would multiply the
branching factor at every level.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

import structlog

from splitrouter.config import DEFAULT_ROUTER_CONFIG
from splitrouter.errors import GraphLookupError, RouteValidationError
from splitrouter.models.route import StackedRoute, StackedSegment
from splitrouter.models.types import normalize_id
from splitrouter.pools.registry import TokenRegistry
from splitrouter.routing.graph import PoolGraph

logger = structlog.get_logger()


@dataclass(frozen=True)
class SearchConstraints:
    """Limits applied to a route search.

    Attributes:
        max_hops: Maximum number of hops per route
        ignore_token_ids: Tokens that may not appear anywhere in a route
    """

    max_hops: int = DEFAULT_ROUTER_CONFIG.default_search_hops
    ignore_token_ids: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "ignore_token_ids", frozenset(normalize_id(t) for t in self.ignore_token_ids)
        )

    @classmethod
    def create(cls, max_hops: int, ignore_token_ids: list[str] | None = None) -> SearchConstraints:
        return cls(max_hops=max_hops, ignore_token_ids=frozenset(ignore_token_ids or ()))


class _SearchState:
    """Mutable accumulator shared across one search's recursion."""

    __slots__ = ("results", "deadline", "expired")

    def __init__(self, deadline: float | None) -> None:
        self.results: list[StackedRoute] = []
        self.deadline = deadline
        self.expired = False

    def check_deadline(self) -> bool:
        if self.deadline is not None and time.monotonic() > self.deadline:
            self.expired = True
        return self.expired


def _route_search(
    graph: PoolGraph,
    hops: int,
    constraints: SearchConstraints,
    route: StackedRoute,
    state: _SearchState,
    prev_origin: str,
    origin: str,
    dst: str,
) -> None:
    if state.check_deadline():
        return

    hops += 1
    for neighbor, edge in graph._neighbors_fast(origin).items():
        if neighbor == dst:
            # The destination is committed regardless of remaining hop budget
            state.results.append(
                [*route, StackedSegment(src=origin, dst=neighbor, pool_ids=list(edge.pool_ids))]
            )
        elif hops < constraints.max_hops:
            # Only length-2 cycles (A -> B -> A) are guarded; hop limits are
            # small enough that longer cycles cannot complete a route.
            if (
                neighbor == origin
                or neighbor == prev_origin
                or neighbor in constraints.ignore_token_ids
            ):
                continue
            _route_search(
                graph,
                hops,
                constraints,
                [*route, StackedSegment(src=origin, dst=neighbor, pool_ids=list(edge.pool_ids))],
                state,
                origin,
                neighbor,
                dst,
            )
            if state.expired:
                return


def _validate_request(
    graph: PoolGraph, src: str, dst: str, constraints: SearchConstraints
) -> None:
    """Raise if a search request cannot produce routes."""
    if not src or not dst:
        raise RouteValidationError(
            f"A source ({src!r}) and destination ({dst!r}) token are required."
        )
    if src == dst:
        raise RouteValidationError(f"Same-token routes are not supported ({src} -> {dst}).")
    if src in constraints.ignore_token_ids:
        raise RouteValidationError(f"Source token {src} is constrained out of the search.")
    if dst in constraints.ignore_token_ids:
        raise RouteValidationError(f"Destination token {dst} is constrained out of the search.")
    if not graph.has_token(src):
        raise GraphLookupError(f"Source token {src} is not in the graph.")
    if not graph.has_token(dst):
        raise GraphLookupError(f"Destination token {dst} is not in the graph.")


def find_routes(
    graph: PoolGraph,
    src: str,
    dst: str,
    constraints: SearchConstraints | None = None,
    *,
    hub_tokens: frozenset[str] = DEFAULT_ROUTER_CONFIG.hub_tokens,
    deadline: float | None = None,
) -> list[StackedRoute]:
    """Find stacked routes from src to dst.

    Depth-limited DFS from src. Every route returned has at most
    ``constraints.max_hops`` hops, except that a search from a hub token
    is clamped to a single hop. Results are sorted by hop count, fewest
    first.

    Invalid requests (missing, equal or excluded endpoints, or tokens
    absent from the graph) return an empty list and log a warning.

    Args:
        graph: Pool graph to search
        src: Source token id (any case)
        dst: Destination token id (any case)
        constraints: Hop limit and excluded tokens (default: 2 hops)
        hub_tokens: Tokens whose searches are clamped to one hop
        deadline: Optional ``time.monotonic()`` deadline; on expiry the
            search unwinds and returns the routes found so far

    Returns:
        List of stacked routes (possibly empty)
    """
    constraints = constraints or SearchConstraints()
    src_norm = normalize_id(src) if src else ""
    dst_norm = normalize_id(dst) if dst else ""

    try:
        _validate_request(graph, src_norm, dst_norm, constraints)
    except (RouteValidationError, GraphLookupError) as err:
        logger.warning(
            "route_search_rejected",
            reason=type(err).__name__,
            detail=str(err),
            src=src_norm,
            dst=dst_norm,
        )
        return []

    if src_norm in hub_tokens and constraints.max_hops > 1:
        logger.debug("route_search_hub_source", src=src_norm, max_hops=1)
        constraints = SearchConstraints(max_hops=1, ignore_token_ids=constraints.ignore_token_ids)

    state = _SearchState(deadline)
    _route_search(graph, 0, constraints, [], state, "", src_norm, dst_norm)

    if state.expired:
        logger.warning(
            "route_search_deadline_exceeded",
            src=src_norm,
            dst=dst_norm,
            partial_routes=len(state.results),
        )

    state.results.sort(key=len)
    return state.results


def routes_to_string(stacked_routes: list[StackedRoute], tokens: TokenRegistry | None = None) -> str:
    """Render stacked routes, one block per route, for logs and debugging."""
    lines: list[str] = [""]
    for route_num, route in enumerate(stacked_routes, start=1):
        lines.append(f"Route {route_num}:")
        lines.append("-" * 40)
        for seg in route:
            src_str, dst_str = seg.src, seg.dst
            if tokens is not None:
                src_str += f" ({tokens.get_symbol(seg.src)})"
                dst_str += f" ({tokens.get_symbol(seg.dst)})"
            lines.append(f"  {src_str} --> {dst_str}, {len(seg.pool_ids)} pools:")
            lines.extend(f"      {pool_id}" for pool_id in seg.pool_ids)
        lines.append("")
    return "\n".join(lines)


__all__ = ["SearchConstraints", "find_routes", "routes_to_string"]
