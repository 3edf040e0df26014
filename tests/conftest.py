"""Pytest configuration and fixtures."""

import pytest
import structlog

from splitrouter.models import Pool
from splitrouter.routing.graph import PoolGraph
from tests.helpers import DAI, TOKEN_X, TOKEN_Y, TOKEN_Z, USDC, WETH, make_pool


@pytest.fixture(autouse=True)
def _reset_structlog() -> None:
    """Keep structlog at its defaults so capture_logs sees every event."""
    structlog.reset_defaults()


@pytest.fixture
def xyz_pools() -> list[Pool]:
    """X-Y via p1 and Y-Z via p2."""
    return [
        make_pool("p1", TOKEN_X, TOKEN_Y, reserve0="1000", reserve1="2000"),
        make_pool("p2", TOKEN_Y, TOKEN_Z, reserve0="2000", reserve1="4000"),
    ]


@pytest.fixture
def xyz_graph(xyz_pools: list[Pool]) -> PoolGraph:
    return PoolGraph.from_pools(xyz_pools)


@pytest.fixture
def usd_pools() -> list[Pool]:
    """WETH/USDC at 2000 USDC per WETH and DAI/WETH at 2000 DAI per WETH."""
    return [
        make_pool("weth-usdc", WETH, USDC, reserve0="1000", reserve1="2000000"),
        make_pool("dai-weth", DAI, WETH, reserve0="2000000", reserve1="1000"),
    ]
