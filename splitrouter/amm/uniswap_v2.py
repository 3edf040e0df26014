"""UniswapV2-style constant-product pricing.

UniswapV2 uses the constant product formula: x * y = k
With a 0.3% fee on input amounts.

Pool snapshots carry reserves in human units (e.g. "1234.5" WETH). To
price a hop, reserves and the input are shifted into integer base units
using each token's decimals, the integer swap formula is applied, and
the output is shifted back. Price impact compares the execution price
with the pre-trade mid price, fee included:

    exact_quote = amount_in * reserve_out / reserve_in
    impact = (exact_quote - amount_out) / exact_quote * 100
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Context, Decimal, InvalidOperation
from fractions import Fraction
from typing import Protocol

import structlog

from splitrouter.constants import POOL_FEE_BPS, SIGNIFICANT_DIGITS, UINT256_MAX
from splitrouter.errors import EstimationError
from splitrouter.models.pool import Pool, Token

logger = structlog.get_logger()

# Wide enough to shift any uint256 amount by up to 77 decimals exactly
_EXACT = Context(prec=160)


class TokenSource(Protocol):
    """Anything that can look up token reference data by id."""

    def get_token(self, token_id: str) -> Token | None: ...


def to_integer_amount(value: str | Decimal, decimals: int) -> int:
    """Shift a human-unit decimal string into integer base units.

    Fractional digits beyond ``decimals`` are truncated:
    ("1.35", 5) -> 135000, ("121", 3) -> 121000, ("0.1234", 2) -> 12.

    Raises:
        EstimationError: If the value is not a finite non-negative number
    """
    try:
        amount = Decimal(value.strip()) if isinstance(value, str) else Decimal(value)
    except InvalidOperation as err:
        raise EstimationError(f"Malformed amount: {value!r}") from err
    if not amount.is_finite() or amount < 0:
        raise EstimationError(f"Amount must be finite and non-negative: {value!r}")
    scaled = _EXACT.scaleb(amount, decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def to_exact(raw: int, decimals: int) -> str:
    """Render integer base units as an exact decimal string."""
    value = _EXACT.scaleb(Decimal(raw), -decimals)
    return format(value.normalize(_EXACT), "f")


def to_significant(value: Fraction | Decimal, digits: int = SIGNIFICANT_DIGITS) -> str:
    """Round to significant digits (half up), without exponent notation."""
    if isinstance(value, Fraction):
        ctx = Context(prec=digits + 10)
        value = ctx.divide(Decimal(value.numerator), Decimal(value.denominator))
    rounded = Context(prec=digits, rounding=ROUND_HALF_UP).plus(value)
    return format(rounded.normalize(_EXACT), "f")


@dataclass
class SwapEstimate:
    """Result of pricing an exact-input swap through one pool."""

    pool_id: str
    token_in: str
    token_out: str
    # Exact decimal strings in human units
    amount_in: str
    amount_out: str
    # Percent, rounded to significant digits
    impact: str

    @property
    def impact_fraction(self) -> float:
        return float(self.impact) / 100.0


class UniswapV2:
    """Constant-product AMM math.

    Formula: amount_out = (amount_in * fee * reserve_out) / (reserve_in * 10000 + amount_in * fee)

    where fee = 10000 - fee_bps (9970 for the standard 0.3%).
    """

    def __init__(self, fee_bps: int = POOL_FEE_BPS) -> None:
        self.fee_bps = fee_bps

    @property
    def fee_multiplier(self) -> int:
        """Fee multiplier for AMM math (10000 - fee_bps)."""
        return 10000 - self.fee_bps

    def get_amount_out(self, amount_in: int, reserve_in: int, reserve_out: int) -> int:
        """Calculate output amount using constant product formula.

        Args:
            amount_in: Input token amount (base units)
            reserve_in: Reserve of input token in pool (base units)
            reserve_out: Reserve of output token in pool (base units)

        Returns:
            Output token amount (base units, floored)
        """
        if amount_in <= 0:
            return 0
        if reserve_in <= 0 or reserve_out <= 0:
            return 0

        amount_in_with_fee = amount_in * self.fee_multiplier
        numerator = amount_in_with_fee * reserve_out
        denominator = reserve_in * 10000 + amount_in_with_fee
        return numerator // denominator

    def price_impact(
        self, amount_in: int, amount_out: int, reserve_in: int, reserve_out: int
    ) -> Fraction:
        """Price impact as an exact fraction of the mid-price quote (0..1)."""
        exact_quote = Fraction(amount_in * reserve_out, reserve_in)
        if exact_quote == 0:
            return Fraction(0)
        return (exact_quote - amount_out) / exact_quote

    def estimate(
        self,
        pool: Pool | None,
        tokens: TokenSource,
        token_in: str,
        amount: str | Decimal,
    ) -> SwapEstimate:
        """Price an exact-input swap of ``amount`` token_in through ``pool``.

        Raises:
            EstimationError: Missing pool, missing token data or decimals,
                malformed or empty reserves, uint256 overflow, or a trade
                too small to produce any output
        """
        if pool is None:
            raise EstimationError("Pool not found")

        token0 = tokens.get_token(pool.token0)
        token1 = tokens.get_token(pool.token1)
        if token0 is None or token0.decimals is None:
            raise EstimationError(f"No decimals for token {pool.token0}", pool_id=pool.id)
        if token1 is None or token1.decimals is None:
            raise EstimationError(f"No decimals for token {pool.token1}", pool_id=pool.id)

        try:
            token_out = pool.other_token(token_in)
        except ValueError as err:
            raise EstimationError(str(err), pool_id=pool.id) from err

        raw_reserve0 = to_integer_amount(pool.reserve0, token0.decimals)
        raw_reserve1 = to_integer_amount(pool.reserve1, token1.decimals)
        if token_in == pool.token0:
            reserve_in, reserve_out = raw_reserve0, raw_reserve1
            decimals_in, decimals_out = token0.decimals, token1.decimals
        else:
            reserve_in, reserve_out = raw_reserve1, raw_reserve0
            decimals_in, decimals_out = token1.decimals, token0.decimals

        if reserve_in <= 0 or reserve_out <= 0:
            raise EstimationError("Insufficient reserves", pool_id=pool.id)

        amount_in = to_integer_amount(amount, decimals_in)
        if max(amount_in, reserve_in, reserve_out) > UINT256_MAX:
            raise EstimationError("Amount exceeds uint256", pool_id=pool.id)

        amount_out = self.get_amount_out(amount_in, reserve_in, reserve_out)
        if amount_out <= 0:
            raise EstimationError("Insufficient input amount", pool_id=pool.id)

        impact = self.price_impact(amount_in, amount_out, reserve_in, reserve_out)
        return SwapEstimate(
            pool_id=pool.id,
            token_in=token_in,
            token_out=token_out,
            amount_in=to_exact(amount_in, decimals_in),
            amount_out=to_exact(amount_out, decimals_out),
            impact=to_significant(impact * 100),
        )


# Singleton instance
uniswap_v2 = UniswapV2()


__all__ = [
    "SwapEstimate",
    "TokenSource",
    "UniswapV2",
    "uniswap_v2",
    "to_exact",
    "to_integer_amount",
    "to_significant",
]
