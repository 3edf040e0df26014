"""Shared token constants for tests.

All ids are lowercase for consistency with normalize_id().

Usage:
    from tests.helpers import WETH, USDC
    # or
    from tests.helpers.constants import WETH, USDC
"""

# =============================================================================
# Mainnet tokens (reference and stable assets for USD estimates)
# =============================================================================

WETH = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"  # Wrapped Ether (18 decimals)
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"  # USD Coin (6 decimals)
DAI = "0x6b175474e89094c44da98b954eedeac495271d0f"  # Dai Stablecoin (18 decimals)
WBTC = "0x2260fac5e5542a773aa44fbcfedf7c193bc2c599"  # Wrapped Bitcoin (8 decimals)

# =============================================================================
# Symbolic tokens for small hand-built graphs
# =============================================================================

TOKEN_X = "x"
TOKEN_Y = "y"
TOKEN_Z = "z"
TOKEN_W = "w"


# =============================================================================
# Token metadata lookup
# =============================================================================

TOKEN_DECIMALS = {
    WETH: 18,
    USDC: 6,
    DAI: 18,
    WBTC: 8,
}

TOKEN_SYMBOLS = {
    WETH: "WETH",
    USDC: "USDC",
    DAI: "DAI",
    WBTC: "WBTC",
    TOKEN_X: "X",
    TOKEN_Y: "Y",
    TOKEN_Z: "Z",
    TOKEN_W: "W",
}


__all__ = [
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
]
