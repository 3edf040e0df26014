"""Pydantic models for quote responses.

Route and tree payloads are carried as plain dicts (``dataclasses.asdict``
of Segment, ``tree_to_dict`` of a TradeTree) so the transport layer can
serialize a result with ``model_dump(by_alias=True)``.
"""

from typing import Any

from pydantic import BaseModel, Field


class TradeYield(BaseModel):
    """Destination-token output of a trade and its approximate USD value."""

    usd: float = Field(default=0.0, description="Approximate USD value of the output.")
    token: float = Field(default=0.0, description="Destination-token amount received.")


class RouteStats(BaseModel):
    """Counts collected while producing a quote."""

    routes_found: int = Field(default=0, alias="routesFound")
    preferred_route_found: bool = Field(default=False, alias="preferredRouteFound")
    routes_meeting_criteria: int = Field(default=0, alias="routesMeetingCriteria")
    mp_routes_meeting_criteria: int = Field(default=0, alias="mpRoutesMeetingCriteria")
    mp_routes_after_pruning: int = Field(default=0, alias="mpRoutesAfterPruning")

    model_config = {"populate_by_name": True}


class RouteResult(BaseModel):
    """Single-path quote: costed routes, best first."""

    routes: list[list[dict[str, Any]]] = Field(default_factory=list)
    preferred_route: str | None = Field(
        default=None,
        alias="preferredRoute",
        description="Symbols of the preferred external route, if one was given.",
    )
    route_stats: RouteStats = Field(default_factory=RouteStats, alias="routeStats")

    model_config = {"populate_by_name": True}


class MultiPathResult(BaseModel):
    """Multi-path quote with the single-path baseline it improves on."""

    src: str
    src_symbol: str = Field(default="", alias="srcSymbol")
    dst: str
    dst_symbol: str = Field(default="", alias="dstSymbol")
    input_amount: str = Field(alias="inputAmount")
    single_path_tree: dict[str, Any] | None = Field(default=None, alias="singlePathTree")
    multi_path_tree: dict[str, Any] | None = Field(default=None, alias="multiPathTree")
    preferred_yield: TradeYield = Field(default_factory=TradeYield, alias="preferredYield")
    single_path_yield: TradeYield = Field(default_factory=TradeYield, alias="singlePathYield")
    multi_path_yield: TradeYield = Field(default_factory=TradeYield, alias="multiPathYield")
    route_stats: RouteStats = Field(default_factory=RouteStats, alias="routeStats")

    model_config = {"populate_by_name": True}


__all__ = ["TradeYield", "RouteStats", "RouteResult", "MultiPathResult"]
