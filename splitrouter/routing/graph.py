"""Token graph built from a pool snapshot.

The graph is undirected and simple: there is one edge per unordered
token pair, and every pool connecting that pair is folded into the
edge's ``pool_ids``. Route search walks token pairs, not pools, which
keeps the fan-out of hub tokens manageable; expansion into concrete
pools happens afterwards (splitrouter.routing.expansion).

The graph is rebuilt wholesale when the snapshot is refreshed and is
read-only afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from splitrouter.models.types import normalize_id

if TYPE_CHECKING:
    from splitrouter.models.pool import Pool

logger = structlog.get_logger()


@dataclass
class PoolEdge:
    """Edge between two tokens, shared by both adjacency directions."""

    pool_ids: list[str] = field(default_factory=list)


class PoolGraph:
    """Graph of tokens connected by pools.

    Adjacency is ``token -> neighbor -> PoolEdge``; the same PoolEdge
    object is stored under (a, b) and (b, a).
    """

    def __init__(self) -> None:
        """Initialize an empty pool graph."""
        self._adjacency: dict[str, dict[str, PoolEdge]] = {}

    @classmethod
    def from_pools(cls, pools: Iterable[Pool]) -> PoolGraph:
        """Build a PoolGraph from pool snapshot data.

        Pools without two distinct tokens are skipped.
        """
        graph = cls()
        skipped = 0
        for pool in pools:
            if not pool.token0 or not pool.token1 or pool.token0 == pool.token1:
                skipped += 1
                continue
            graph._add_pool(pool.token0, pool.token1, pool.id)

        if skipped:
            logger.debug("graph_pools_skipped", skipped=skipped)
        graph.log_stats()
        return graph

    # Registry iteration yields Pool objects, so the same builder applies
    from_registry = from_pools

    def _add_pool(self, token_a: str, token_b: str, pool_id: str) -> None:
        """Fetch or create the edge between two tokens and append the pool."""
        token_a = normalize_id(token_a)
        token_b = normalize_id(token_b)
        edge = self._adjacency.get(token_a, {}).get(token_b)
        if edge is None:
            edge = PoolEdge()
            self._adjacency.setdefault(token_a, {})[token_b] = edge
            self._adjacency.setdefault(token_b, {})[token_a] = edge
        if pool_id not in edge.pool_ids:
            edge.pool_ids.append(pool_id)

    def neighbors(self, token: str) -> list[str]:
        """Get all tokens directly tradeable with given token.

        Args:
            token: Token id (any case, will be normalized)

        Returns:
            Neighbor token ids in insertion order (empty if unknown)
        """
        return list(self._adjacency.get(normalize_id(token), {}))

    def _neighbors_fast(self, token_normalized: str) -> dict[str, PoolEdge]:
        """Neighbor -> edge mapping for an already-normalized token."""
        return self._adjacency.get(token_normalized, {})

    def edge(self, token_a: str, token_b: str) -> PoolEdge | None:
        """Get the edge between two tokens, if any (order independent)."""
        return self._adjacency.get(normalize_id(token_a), {}).get(normalize_id(token_b))

    def has_token(self, token: str) -> bool:
        """Check if a token exists in the graph."""
        return normalize_id(token) in self._adjacency

    def degree(self, token: str) -> int:
        return len(self._adjacency.get(normalize_id(token), {}))

    @property
    def token_count(self) -> int:
        """Number of unique tokens in the graph."""
        return len(self._adjacency)

    def edges(self) -> list[tuple[str, str, PoolEdge]]:
        """Each unordered edge once, as (token_a, token_b, edge)."""
        seen: set[int] = set()
        result: list[tuple[str, str, PoolEdge]] = []
        for token_a, neighbors in self._adjacency.items():
            for token_b, edge in neighbors.items():
                if id(edge) in seen:
                    continue
                seen.add(id(edge))
                result.append((token_a, token_b, edge))
        return result

    @property
    def edge_count(self) -> int:
        return len(self.edges())

    def log_stats(self) -> None:
        """Log node, edge and pool counts plus the most-connected pair."""
        edges = self.edges()
        pool_count = sum(len(edge.pool_ids) for _, _, edge in edges)
        busiest: tuple[str, str, PoolEdge] | None = None
        for entry in edges:
            if busiest is None or len(entry[2].pool_ids) > len(busiest[2].pool_ids):
                busiest = entry
        logger.info(
            "pool_graph_built",
            tokens=self.token_count,
            edges=len(edges),
            pools=pool_count,
            busiest_pair=f"{busiest[0]} <-> {busiest[1]}" if busiest else None,
            busiest_pair_pools=len(busiest[2].pool_ids) if busiest else 0,
        )


__all__ = ["PoolEdge", "PoolGraph"]
