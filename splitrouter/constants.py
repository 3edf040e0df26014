"""Well-known addresses and protocol parameters for route finding.

Centralizes reference-asset addresses and numeric defaults shared by
the routing, quoting and trade-tree modules.
"""

from splitrouter.models.types import is_valid_address

# Sentinel meaning "do not pin pool data to a block number"
NO_BLOCK_NUM = -1

# Average block interval; pool data older than this is considered stale
AVG_BLOCK_MS = 15_000

# Hop limits
MAX_HOPS = 3
DEFAULT_SEARCH_HOPS = 2

MAX_RESULTS = 100


def _validate_token_address(name: str, address: str) -> str:
    """Validate and return a token address.

    Raises:
        ValueError: If the address is invalid
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid {name} address: {address} (must be 0x + 40 hex chars)")
    return address


# Reference asset (wrapped native) and stable asset used for USD estimates.
# All addresses are validated at import time to catch typos early.
WETH = _validate_token_address("WETH", "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2")
USDC = _validate_token_address("USDC", "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48")

# Hub tokens with tens of thousands of neighbors. Searching from one of
# these is clamped to a single hop.
WETH_ADDRESSES = (
    WETH,
    _validate_token_address("WETH (alt 1)", "0xd73d6d4c463df976399acd80ea338384e247c64b"),
    _validate_token_address("WETH (alt 2)", "0x477b466750c31c890db3208816d60c8585be7f0e"),
)

# Constant-product fee in basis points (30 = 0.3%)
POOL_FEE_BPS = 30

# Largest amount or reserve a pool can hold
UINT256_MAX = 2**256 - 1

# Significant digits kept for impact and amounts
SIGNIFICANT_DIGITS = 18

# Trade-tree tuning, chosen empirically. Overridable through RouterConfig.
SPLIT_EXPONENT = 4
DUPLICATE_POOL_MAX_IMPACT = 1.0  # percent
GLOBAL_HIGH_GAIN = 0.99
LOCAL_HIGH_GAIN = 0.98

# Multi-path request defaults
MAX_CONCURRENT_PATHS = 10
MAX_SINGLE_PATH_ROUTES = 25

ROUTE_CACHE_MAX_ENTRIES = 10_000
