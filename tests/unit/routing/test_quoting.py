"""Tests for route costing and pool refresh."""

import asyncio
import time
import warnings

import pytest
from structlog.testing import capture_logs

from splitrouter.amm.uniswap_v2 import UniswapV2
from splitrouter.errors import EstimationError, StalenessWarning
from splitrouter.models import Pool
from splitrouter.pools import PoolRegistry
from splitrouter.routing.quoting import (
    NO_REFRESH,
    RefreshPolicy,
    cost_route,
    cost_routes,
    filter_pool_ids_not_at_block,
    filter_pool_ids_of_age,
    route_pool_ids_of_age,
)
from tests.helpers import TOKEN_X, TOKEN_Y, TOKEN_Z, FakePoolSource, make_context, make_pool, make_route


class CountingAmm(UniswapV2):
    """Constant-product math that counts estimate calls."""

    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    def estimate(self, *args, **kwargs):
        self.calls += 1
        return super().estimate(*args, **kwargs)


def _xyz_route():
    return make_route((TOKEN_X, TOKEN_Y, "p1"), (TOKEN_Y, TOKEN_Z, "p2"))


class TestCostRoute:
    """Tests for cost_route."""

    def test_chains_output_into_next_hop(self, xyz_pools: list[Pool]) -> None:
        context = make_context(xyz_pools)

        route = cost_route(_xyz_route(), "10", 100.0, context)

        assert route is not None
        assert route[0].src_amount == "10"
        assert route[1].src_amount == route[0].dst_amount
        assert float(route[0].dst_amount) < 20
        assert float(route[1].dst_amount) < 2 * float(route[0].dst_amount)
        assert all(float(seg.impact) > 0 for seg in route)

    def test_impact_ceiling_drops_route(self, xyz_pools: list[Pool]) -> None:
        context = make_context(xyz_pools)
        # 10 X into 1000 X / 2000 Y moves the price by about 1.28%
        assert cost_route(_xyz_route(), "10", 1.0, context) is None
        assert cost_route(_xyz_route(), "10", 2.0, context) is not None

    def test_impact_grows_with_input(self, xyz_pools: list[Pool]) -> None:
        context = make_context(xyz_pools)
        impacts = []
        for amount in ("10", "20", "50", "100"):
            route = cost_route(make_route((TOKEN_X, TOKEN_Y, "p1")), amount, 100.0, context)
            impacts.append(float(route[0].impact))

        assert impacts == sorted(impacts)
        assert len(set(impacts)) == len(impacts)

    def test_missing_pool_raises(self, xyz_pools: list[Pool]) -> None:
        context = make_context(xyz_pools)
        with pytest.raises(EstimationError, match="not found"):
            cost_route(make_route((TOKEN_X, TOKEN_Y, "nope")), "10", 100.0, context)


class TestCostRoutes:
    """Tests for cost_routes."""

    def test_drops_unpriceable_routes(self, xyz_pools: list[Pool]) -> None:
        context = make_context(xyz_pools)
        routes = [make_route((TOKEN_X, TOKEN_Y, "nope")), _xyz_route()]

        with capture_logs() as logs:
            costed = asyncio.run(cost_routes(routes, "10", 100.0, context))

        assert costed == [routes[1]]
        failed = [log for log in logs if log["event"] == "route_estimation_failed"]
        assert failed[0]["pool"] == "nope"

    def test_estimates_memoized_per_call(self, xyz_pools: list[Pool]) -> None:
        context = make_context(xyz_pools)
        context.amm = CountingAmm()
        routes = [_xyz_route(), make_route((TOKEN_X, TOKEN_Y, "p1"))]

        costed = asyncio.run(cost_routes(routes, "10", 100.0, context))

        assert len(costed) == 2
        assert context.amm.calls == 2
        assert costed[1][0].dst_amount == costed[0][0].dst_amount

    def test_memoization_can_be_disabled(self, xyz_pools: list[Pool]) -> None:
        context = make_context(xyz_pools)
        context.amm = CountingAmm()
        routes = [_xyz_route(), make_route((TOKEN_X, TOKEN_Y, "p1"))]

        asyncio.run(cost_routes(routes, "10", 100.0, context, cache_estimates=False))

        assert context.amm.calls == 3

    def test_stale_pools_refreshed_in_one_batch(self, xyz_pools: list[Pool]) -> None:
        source = FakePoolSource(
            [
                make_pool("p1", TOKEN_X, TOKEN_Y, reserve0="900", reserve1="2200"),
                make_pool("p2", TOKEN_Y, TOKEN_Z, reserve0="2000", reserve1="4000"),
            ]
        )
        context = make_context(xyz_pools, source=source)

        asyncio.run(cost_routes([_xyz_route()], "10", 100.0, context))

        assert source.calls == [({"p1", "p2"}, -1)]
        pool = context.pools.get_pool("p1")
        assert pool.reserve0 == "900"
        assert pool.updated_at_ms is not None

        # Data is now fresh, no second fetch
        asyncio.run(cost_routes([_xyz_route()], "10", 100.0, context))
        assert len(source.calls) == 1

    def test_block_pinned_refresh(self, xyz_pools: list[Pool]) -> None:
        source = FakePoolSource(xyz_pools)
        context = make_context(xyz_pools, source=source)
        policy = RefreshPolicy(block_number=100)

        asyncio.run(cost_routes([_xyz_route()], "10", 100.0, context, policy))
        asyncio.run(cost_routes([_xyz_route()], "10", 100.0, context, policy))

        assert source.calls == [({"p1", "p2"}, 100)]
        assert context.pools.get_pool("p2").updated_at_block == 100

    def test_no_source_uses_snapshot(self, xyz_pools: list[Pool]) -> None:
        context = make_context(xyz_pools)

        with capture_logs() as logs, warnings.catch_warnings():
            warnings.simplefilter("error")
            costed = asyncio.run(cost_routes([_xyz_route()], "10", 100.0, context))

        assert len(costed) == 1
        assert any(log["event"] == "pool_refresh_skipped" for log in logs)

    def test_stale_data_without_refresh_warns(self, xyz_pools: list[Pool]) -> None:
        source = FakePoolSource(xyz_pools)
        context = make_context(xyz_pools, source=source)

        with capture_logs() as logs, pytest.warns(StalenessWarning):
            costed = asyncio.run(cost_routes([_xyz_route()], "10", 100.0, context, NO_REFRESH))

        assert len(costed) == 1
        assert source.calls == []
        assert any(log["event"] == "stale_pool_data_used" for log in logs)

    def test_fresh_data_without_refresh_is_silent(self) -> None:
        now_ms = int(time.time() * 1000)
        pools = [make_pool("p1", TOKEN_X, TOKEN_Y, updated_at_ms=now_ms)]
        context = make_context(pools)

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            costed = asyncio.run(
                cost_routes([make_route((TOKEN_X, TOKEN_Y, "p1"))], "1", 100.0, context, NO_REFRESH)
            )
        assert len(costed) == 1


class TestFreshnessFilters:
    """Tests for pool freshness helpers."""

    def test_filter_by_age(self) -> None:
        registry = PoolRegistry(
            [
                make_pool("fresh", TOKEN_X, TOKEN_Y, updated_at_ms=10_000),
                make_pool("old", TOKEN_X, TOKEN_Y, updated_at_ms=1_000),
                make_pool("never", TOKEN_X, TOKEN_Y),
            ]
        )
        stale = filter_pool_ids_of_age(
            registry, ["fresh", "old", "never", "unknown"], age_ms=5_000, now_ms=12_000
        )
        assert stale == {"old", "never", "unknown"}

    def test_filter_by_block(self) -> None:
        registry = PoolRegistry(
            [
                make_pool("pinned", TOKEN_X, TOKEN_Y, updated_at_block=7),
                make_pool("other", TOKEN_X, TOKEN_Y, updated_at_block=6),
            ]
        )
        assert filter_pool_ids_not_at_block(registry, ["pinned", "other"], 7) == {"other"}

    def test_route_pool_ids_of_age(self, xyz_pools: list[Pool]) -> None:
        registry = PoolRegistry(xyz_pools)
        assert route_pool_ids_of_age(registry, [_xyz_route()], now_ms=0) == {"p1", "p2"}
