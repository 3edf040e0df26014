"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Token ids and metadata
- factories: Pool, registry, context and route factory functions
"""

from tests.helpers.constants import (
    DAI,
    TOKEN_DECIMALS,
    TOKEN_SYMBOLS,
    TOKEN_W,
    TOKEN_X,
    TOKEN_Y,
    TOKEN_Z,
    USDC,
    WBTC,
    WETH,
)
from tests.helpers.factories import (
    FakePoolSource,
    make_context,
    make_gain_route,
    make_pool,
    make_registries,
    make_route,
    make_token,
)

__all__ = [
    # Constants
    "WETH",
    "USDC",
    "DAI",
    "WBTC",
    "TOKEN_X",
    "TOKEN_Y",
    "TOKEN_Z",
    "TOKEN_W",
    "TOKEN_DECIMALS",
    "TOKEN_SYMBOLS",
    # Factories
    "make_pool",
    "make_token",
    "make_registries",
    "make_context",
    "make_route",
    "make_gain_route",
    "FakePoolSource",
]
