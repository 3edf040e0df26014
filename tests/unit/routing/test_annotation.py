"""Tests for per-route annotation passes and route selection."""

import asyncio
import math

import pytest
from structlog.testing import capture_logs

from splitrouter.models import Pool, Segment
from splitrouter.routing.annotation import (
    annotate_routes_with_gain_to_dest,
    annotate_routes_with_symbols,
    annotate_routes_with_usd,
    annotate_routes_with_yield_to_dest,
    prune_routes,
)
from splitrouter.routing.quoting import cost_route
from tests.helpers import DAI, TOKEN_X, TOKEN_Y, TOKEN_Z, USDC, WETH, make_context, make_route


def _scored_route(pool_id: str, gain: float, yield_to_dest: float) -> list[Segment]:
    return [
        Segment(
            src=TOKEN_X,
            dst=TOKEN_Y,
            pool_id=pool_id,
            gain_to_dest=gain,
            yield_to_dest=yield_to_dest,
        )
    ]


class TestGainAndYield:
    """Tests for gain and yield annotation."""

    def test_gain_is_product_back_to_front(self) -> None:
        route = make_route((TOKEN_X, TOKEN_Y, "p1"), (TOKEN_Y, TOKEN_Z, "p2"), impacts=["10", "20"])

        annotate_routes_with_gain_to_dest([route])

        assert route[1].gain_to_dest == pytest.approx(0.8)
        assert route[0].gain_to_dest == pytest.approx(0.72)

    def test_uncosted_segment_counts_as_lossless(self) -> None:
        route = make_route((TOKEN_X, TOKEN_Y, "p1"), (TOKEN_Y, TOKEN_Z, "p2"), impacts=[None, "50"])
        annotate_routes_with_gain_to_dest([route])
        assert route[0].gain_to_dest == pytest.approx(0.5)

    def test_yield(self, xyz_pools: list[Pool]) -> None:
        route = cost_route(
            make_route((TOKEN_X, TOKEN_Y, "p1"), (TOKEN_Y, TOKEN_Z, "p2")),
            "10",
            100.0,
            make_context(xyz_pools),
        )

        annotate_routes_with_yield_to_dest([route])

        final = float(route[-1].dst_amount)
        assert route[0].yield_to_dest == pytest.approx(final / 10)
        assert route[1].yield_to_dest == pytest.approx(final / float(route[1].src_amount))

    def test_yield_of_uncosted_route_is_nan(self) -> None:
        route = make_route((TOKEN_X, TOKEN_Y, "p1"))
        annotate_routes_with_yield_to_dest([route, []])
        assert math.isnan(route[0].yield_to_dest)


class TestSymbols:
    """Tests for annotate_routes_with_symbols."""

    def test_symbols(self, xyz_pools: list[Pool]) -> None:
        route = make_route((TOKEN_X, TOKEN_Y, "p1"))
        annotate_routes_with_symbols(make_context(xyz_pools).tokens, [route])
        assert (route[0].src_symbol, route[0].dst_symbol) == ("X", "Y")

    def test_id_suffix(self, usd_pools: list[Pool]) -> None:
        route = make_route((DAI, WETH, "dai-weth"))
        annotate_routes_with_symbols(
            make_context(usd_pools).tokens, [route], include_id_suffix=True
        )
        assert route[0].src_symbol == "DAI (1d0f)"
        assert route[0].dst_symbol == "WETH (6cc2)"


class TestUsd:
    """Tests for annotate_routes_with_usd."""

    def test_costed_segments_valued(self, usd_pools: list[Pool]) -> None:
        context = make_context(usd_pools, with_pricing=True)
        route = cost_route(
            make_route((DAI, WETH, "dai-weth"), (WETH, USDC, "weth-usdc")), "1000", 100.0, context
        )

        asyncio.run(annotate_routes_with_usd([route], context))

        assert route[0].src_usd == "1000.00"
        assert route[0].dst_usd == route[1].src_usd
        assert 0 < float(route[1].dst_usd) < 1000

    def test_uncosted_segments_skipped(self, usd_pools: list[Pool]) -> None:
        context = make_context(usd_pools, with_pricing=True)
        route = make_route((DAI, WETH, "dai-weth"))

        asyncio.run(annotate_routes_with_usd([route], context))

        assert route[0].src_usd is None

    def test_without_pricing(self, xyz_pools: list[Pool]) -> None:
        context = make_context(xyz_pools)
        route = cost_route(make_route((TOKEN_X, TOKEN_Y, "p1")), "1", 100.0, context)

        with capture_logs() as logs:
            asyncio.run(annotate_routes_with_usd([route], context))

        assert route[0].src_usd is None
        assert logs[0]["event"] == "usd_annotation_skipped"


class TestPruneRoutes:
    """Tests for prune_routes."""

    def test_inconsistent_pricing_dropped(self) -> None:
        best = _scored_route("a", 0.95, 2.0)
        close = _scored_route("b", 0.9, 1.9)
        mispriced = _scored_route("c", 0.9, 1.0)

        with capture_logs() as logs:
            kept = prune_routes([close, mispriced, best])

        assert kept == [best, close]
        pruned = [log for log in logs if log["event"] == "route_pruned_inconsistent_pricing"]
        assert pruned[0]["pools"] == ["c"]

    def test_truncated_to_max_routes(self) -> None:
        routes = [_scored_route(str(i), 0.5 + i / 100, 1.0) for i in range(5)]

        kept = prune_routes(routes, max_routes=2)

        assert [route[0].pool_id for route in kept] == ["4", "3"]

    def test_min_gain(self) -> None:
        routes = [_scored_route("a", 0.5, 1.0), _scored_route("b", 0.2, 1.0)]
        assert [r[0].pool_id for r in prune_routes(routes, min_gain_to_dest=0.3)] == ["a"]

    def test_without_yields_only_sorts(self) -> None:
        routes = [_scored_route("a", 0.5, math.nan), _scored_route("b", 0.7, math.nan), []]
        assert [r[0].pool_id for r in prune_routes(routes)] == ["b", "a"]
