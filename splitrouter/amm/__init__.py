"""AMM (Automated Market Maker) pricing."""

from splitrouter.amm.uniswap_v2 import (
    SwapEstimate,
    TokenSource,
    UniswapV2,
    to_exact,
    to_integer_amount,
    to_significant,
    uniswap_v2,
)

__all__ = [
    "SwapEstimate",
    "TokenSource",
    "UniswapV2",
    "uniswap_v2",
    "to_exact",
    "to_integer_amount",
    "to_significant",
]
