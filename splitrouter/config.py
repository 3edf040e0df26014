"""Router configuration and logging setup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

import structlog

from splitrouter.constants import (
    AVG_BLOCK_MS,
    DEFAULT_SEARCH_HOPS,
    DUPLICATE_POOL_MAX_IMPACT,
    GLOBAL_HIGH_GAIN,
    LOCAL_HIGH_GAIN,
    MAX_CONCURRENT_PATHS,
    MAX_HOPS,
    MAX_RESULTS,
    ROUTE_CACHE_MAX_ENTRIES,
    SPLIT_EXPONENT,
    WETH_ADDRESSES,
)


@dataclass(frozen=True)
class RouterConfig:
    """Centralized configuration for route search, costing and splitting.

    Attributes:
        max_hops: Hop limit used to populate the route cache (default: 3)
        default_search_hops: Hop limit when a search gets no constraint (default: 2)
        max_impact_percent: Per-hop price impact ceiling in percent (default: 10.0)
        avg_block_ms: Freshness window for pool data (default: 15,000 ms)
        cache_max_entries: LRU bound on cached (src, dst) route sets
        split_exponent: Exponent applied to gain-to-destination when splitting
        duplicate_pool_max_impact: Impact (percent) above which a reused
            pool causes its lower-gain routes to be pruned
        global_high_gain: Gain above which every other route is discarded
        local_high_gain: Gain above which sibling routes at a node are discarded
        max_concurrent_paths: Routes considered for a multi-path trade
        max_results: Single-path routes returned per request
        hub_tokens: Tokens whose searches are clamped to one hop
    """

    max_hops: int = MAX_HOPS
    default_search_hops: int = DEFAULT_SEARCH_HOPS
    max_impact_percent: float = 10.0
    avg_block_ms: int = AVG_BLOCK_MS
    cache_max_entries: int = ROUTE_CACHE_MAX_ENTRIES

    split_exponent: int = SPLIT_EXPONENT
    duplicate_pool_max_impact: float = DUPLICATE_POOL_MAX_IMPACT
    global_high_gain: float = GLOBAL_HIGH_GAIN
    local_high_gain: float = LOCAL_HIGH_GAIN

    max_concurrent_paths: int = MAX_CONCURRENT_PATHS
    max_results: int = MAX_RESULTS

    hub_tokens: frozenset[str] = field(default_factory=lambda: frozenset(WETH_ADDRESSES))

    @classmethod
    def from_env(cls) -> RouterConfig:
        """Build a config from SPLITROUTER_* environment variables.

        Unset variables keep their defaults.
        """
        defaults = cls()
        return cls(
            max_hops=int(os.environ.get("SPLITROUTER_MAX_HOPS", str(defaults.max_hops))),
            max_impact_percent=float(
                os.environ.get("SPLITROUTER_MAX_IMPACT", str(defaults.max_impact_percent))
            ),
            avg_block_ms=int(
                os.environ.get("SPLITROUTER_AVG_BLOCK_MS", str(defaults.avg_block_ms))
            ),
            cache_max_entries=int(
                os.environ.get("SPLITROUTER_CACHE_MAX_ENTRIES", str(defaults.cache_max_entries))
            ),
            max_concurrent_paths=int(
                os.environ.get("SPLITROUTER_MAX_PATHS", str(defaults.max_concurrent_paths))
            ),
            max_results=int(
                os.environ.get("SPLITROUTER_MAX_RESULTS", str(defaults.max_results))
            ),
        )


# Default configuration instance
DEFAULT_ROUTER_CONFIG = RouterConfig()


def configure_logging(level: int = logging.INFO, json: bool = False) -> None:
    """Configure structlog for console or JSON output."""
    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )
