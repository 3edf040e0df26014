"""LRU cache of expanded routes per (source, destination) pair.

Route search and expansion depend only on the graph, not on the trade
amount, so their output is shared across requests. Costing is not
cached: it depends on the amount and on live reserves.

The cache is shared by concurrent requests and guarded by one lock.
The search itself runs outside the lock.
"""

from __future__ import annotations

import copy
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass

import structlog

from splitrouter.config import DEFAULT_ROUTER_CONFIG, RouterConfig
from splitrouter.models.route import Route
from splitrouter.routing.expansion import expand_routes
from splitrouter.routing.graph import PoolGraph
from splitrouter.routing.pathfinding import SearchConstraints, find_routes

logger = structlog.get_logger()


@dataclass
class CacheEntry:
    updated_at_ms: int
    routes: list[Route]


class RouteCache:
    """Bounded LRU of expanded routes keyed by ``"src-dst"``.

    Args:
        graph: Pool graph searched on a miss
        constraints: Search constraints for cached entries (default:
            ``config.max_hops`` hops)
        config: Router configuration (entry bound and hub tokens)
    """

    def __init__(
        self,
        graph: PoolGraph,
        constraints: SearchConstraints | None = None,
        config: RouterConfig = DEFAULT_ROUTER_CONFIG,
    ) -> None:
        self._graph = graph
        self._constraints = constraints or SearchConstraints(max_hops=config.max_hops)
        self._config = config
        self._max_entries = config.cache_max_entries
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        # Bumped whenever entries are dropped; searches started earlier are not stored
        self._generation = 0
        self.hits = 0
        self.misses = 0

    @staticmethod
    def cache_key(src: str, dst: str) -> str:
        return f"{src.lower()}-{dst.lower()}"

    @property
    def constraints(self) -> SearchConstraints:
        return self._constraints

    def _search(
        self, src: str, dst: str, constraints: SearchConstraints, graph: PoolGraph | None = None
    ) -> list[Route]:
        stacked = find_routes(
            graph if graph is not None else self._graph,
            src,
            dst,
            constraints,
            hub_tokens=self._config.hub_tokens,
        )
        return expand_routes(stacked)

    def get_routes(
        self,
        src: str,
        dst: str,
        force_update: bool = False,
        max_age_ms: int | None = None,
        max_hops: int | None = None,
    ) -> list[Route]:
        """Get expanded routes from src to dst.

        Args:
            src: Source token id
            dst: Destination token id
            force_update: Recompute even if a cached entry exists
            max_age_ms: Recompute entries older than this (None or 0: no limit)
            max_hops: Only return routes with at most this many hops. A
                value above the cache's own hop limit bypasses the cache.

        Returns:
            Copies of the cached routes, safe to annotate in place
        """
        if max_hops and max_hops > self._constraints.max_hops:
            logger.warning(
                "route_cache_bypassed",
                max_hops=max_hops,
                cache_max_hops=self._constraints.max_hops,
            )
            constraints = SearchConstraints(
                max_hops=max_hops, ignore_token_ids=self._constraints.ignore_token_ids
            )
            return self._search(src, dst, constraints)

        key = self.cache_key(src, dst)
        now_ms = int(time.time() * 1000)
        with self._lock:
            entry = self._entries.get(key)
            stale = entry is not None and bool(max_age_ms) and now_ms - entry.updated_at_ms > max_age_ms
            if entry is not None and not force_update and not stale:
                self._entries.move_to_end(key)
                self.hits += 1
                routes = entry.routes
            else:
                self.misses += 1
                routes = None
            graph = self._graph
            generation = self._generation

        if routes is None:
            start = time.monotonic()
            routes = self._search(src, dst, self._constraints, graph)
            with self._lock:
                stored = generation == self._generation
                if stored:
                    self._entries[key] = CacheEntry(
                        updated_at_ms=int(time.time() * 1000), routes=routes
                    )
                    self._entries.move_to_end(key)
                    while len(self._entries) > self._max_entries:
                        self._entries.popitem(last=False)
            logger.debug(
                "route_cache_filled",
                key=key,
                stored=stored,
                routes=len(routes),
                elapsed_ms=round((time.monotonic() - start) * 1000),
            )

        if max_hops:
            routes = [route for route in routes if len(route) <= max_hops]
        return copy.deepcopy(routes)

    def set_graph(self, graph: PoolGraph) -> None:
        """Swap in a rebuilt graph and drop every cached entry."""
        with self._lock:
            self._graph = graph
            self._entries.clear()
            self._generation += 1

    def invalidate(self, src: str, dst: str) -> bool:
        """Drop one entry. Returns whether it was cached."""
        with self._lock:
            self._generation += 1
            return self._entries.pop(self.cache_key(src, dst), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["CacheEntry", "RouteCache"]
