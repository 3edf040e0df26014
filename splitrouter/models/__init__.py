"""Data models for pools, tokens and routes."""

from splitrouter.models.pool import Pool, Token
from splitrouter.models.route import (
    Route,
    Segment,
    StackedRoute,
    StackedSegment,
    is_connected,
    route_path,
)
from splitrouter.models.result import MultiPathResult, RouteResult, RouteStats, TradeYield
from splitrouter.models.types import TokenId, is_valid_address, normalize_id

__all__ = [
    # Types
    "TokenId",
    "normalize_id",
    "is_valid_address",
    # Snapshot models
    "Pool",
    "Token",
    # Routes
    "StackedSegment",
    "StackedRoute",
    "Segment",
    "Route",
    "route_path",
    "is_connected",
    # Results
    "TradeYield",
    "RouteStats",
    "RouteResult",
    "MultiPathResult",
]
