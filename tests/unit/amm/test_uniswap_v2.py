"""Tests for constant-product pricing."""

from decimal import Decimal
from fractions import Fraction

import pytest

from splitrouter.amm import UniswapV2, to_exact, to_integer_amount, to_significant, uniswap_v2
from splitrouter.errors import EstimationError
from tests.helpers import TOKEN_X, TOKEN_Y, TOKEN_Z, make_pool, make_registries


class TestAmountConversion:
    """Tests for decimal shifting helpers."""

    @pytest.mark.parametrize(
        ("value", "decimals", "expected"),
        [
            ("1.35", 5, 135000),
            ("121", 3, 121000),
            ("0.1234", 2, 12),
            ("0", 18, 0),
            (" 2.5 ", 1, 25),
        ],
    )
    def test_to_integer_amount_truncates(self, value: str, decimals: int, expected: int) -> None:
        assert to_integer_amount(value, decimals) == expected

    def test_to_integer_amount_large_values_exact(self) -> None:
        assert to_integer_amount("123456789.123456789123456789", 18) == 123456789123456789123456789

    @pytest.mark.parametrize("value", ["abc", "", "-1", "NaN", "Infinity"])
    def test_to_integer_amount_rejects_malformed(self, value: str) -> None:
        with pytest.raises(EstimationError):
            to_integer_amount(value, 18)

    def test_to_exact(self) -> None:
        assert to_exact(135000, 5) == "1.35"
        assert to_exact(121000, 3) == "121"
        assert to_exact(0, 18) == "0"
        assert to_exact(1, 18) == "0.000000000000000001"

    def test_to_significant(self) -> None:
        assert to_significant(Fraction(1, 3), 5) == "0.33333"
        assert to_significant(Decimal("1.23456789"), 3) == "1.23"
        assert to_significant(Decimal("2.5"), 1) == "3"
        assert to_significant(Decimal("123456"), 2) == "120000"


class TestUniswapV2Math:
    """Tests for the integer swap formula."""

    def test_fee_multiplier(self) -> None:
        assert uniswap_v2.fee_multiplier == 9970
        assert UniswapV2(fee_bps=100).fee_multiplier == 9900

    def test_get_amount_out(self) -> None:
        # 1000 * 9970 * 1e6 // (1e6 * 10000 + 1000 * 9970)
        assert uniswap_v2.get_amount_out(1000, 1_000_000, 1_000_000) == 996

    def test_get_amount_out_zero_cases(self) -> None:
        assert uniswap_v2.get_amount_out(0, 1000, 1000) == 0
        assert uniswap_v2.get_amount_out(100, 0, 1000) == 0
        assert uniswap_v2.get_amount_out(100, 1000, 0) == 0

    def test_price_impact_is_relative_shortfall(self) -> None:
        # Mid quote 200, received 150
        assert uniswap_v2.price_impact(100, 150, 1000, 2000) == Fraction(1, 4)


class TestEstimate:
    """Tests for UniswapV2.estimate on snapshot pools."""

    def test_output_below_mid_price(self) -> None:
        pool = make_pool("p1", TOKEN_X, TOKEN_Y, reserve0="1000", reserve1="2000")
        _, tokens = make_registries([pool])

        estimate = uniswap_v2.estimate(pool, tokens, TOKEN_X, "10")

        assert estimate.token_out == TOKEN_Y
        assert estimate.amount_in == "10"
        assert float(estimate.amount_out) == pytest.approx(19.743160688, rel=1e-9)
        assert float(estimate.amount_out) < 20
        assert float(estimate.impact) == pytest.approx(1.28419656, rel=1e-7)
        assert estimate.impact_fraction == pytest.approx(0.0128419656, rel=1e-7)

    def test_reverse_direction(self) -> None:
        pool = make_pool("p1", TOKEN_X, TOKEN_Y, reserve0="1000", reserve1="2000")
        _, tokens = make_registries([pool])

        estimate = uniswap_v2.estimate(pool, tokens, TOKEN_Y, "20")

        assert estimate.token_out == TOKEN_X
        assert float(estimate.amount_out) < 10

    def test_impact_grows_with_size(self) -> None:
        pool = make_pool("p1", TOKEN_X, TOKEN_Y, reserve0="1000", reserve1="2000")
        _, tokens = make_registries([pool])

        impacts = [
            Decimal(uniswap_v2.estimate(pool, tokens, TOKEN_X, amount).impact)
            for amount in ("10", "25", "50", "100")
        ]
        assert impacts == sorted(impacts)
        assert len(set(impacts)) == len(impacts)

    def test_input_truncated_to_token_decimals(self) -> None:
        pool = make_pool("p1", TOKEN_X, TOKEN_Y, reserve0="1000", reserve1="1000")
        _, tokens = make_registries([pool], decimals={TOKEN_X: 2})

        estimate = uniswap_v2.estimate(pool, tokens, TOKEN_X, "1.23456")
        assert estimate.amount_in == "1.23"

    def test_missing_pool(self) -> None:
        pool = make_pool("p1", TOKEN_X, TOKEN_Y)
        _, tokens = make_registries([pool])
        with pytest.raises(EstimationError):
            uniswap_v2.estimate(None, tokens, TOKEN_X, "1")

    def test_missing_decimals(self) -> None:
        pool = make_pool("p1", TOKEN_X, TOKEN_Y)
        _, tokens = make_registries([pool], decimals={TOKEN_Y: None})
        with pytest.raises(EstimationError, match="decimals") as exc_info:
            uniswap_v2.estimate(pool, tokens, TOKEN_X, "1")
        assert exc_info.value.pool_id == "p1"

    def test_token_not_in_pool(self) -> None:
        pool = make_pool("p1", TOKEN_X, TOKEN_Y)
        _, tokens = make_registries([pool])
        with pytest.raises(EstimationError):
            uniswap_v2.estimate(pool, tokens, TOKEN_Z, "1")

    def test_empty_reserves(self) -> None:
        pool = make_pool("p1", TOKEN_X, TOKEN_Y, reserve0="0", reserve1="1000")
        _, tokens = make_registries([pool])
        with pytest.raises(EstimationError, match="reserves"):
            uniswap_v2.estimate(pool, tokens, TOKEN_X, "1")

    def test_malformed_reserves(self) -> None:
        pool = make_pool("p1", TOKEN_X, TOKEN_Y)
        pool.reserve0 = "not-a-number"
        _, tokens = make_registries([pool])
        with pytest.raises(EstimationError):
            uniswap_v2.estimate(pool, tokens, TOKEN_X, "1")

    def test_uint256_overflow(self) -> None:
        pool = make_pool("p1", TOKEN_X, TOKEN_Y)
        _, tokens = make_registries([pool])
        with pytest.raises(EstimationError, match="uint256"):
            uniswap_v2.estimate(pool, tokens, TOKEN_X, "1e80")

    def test_dust_input_produces_no_output(self) -> None:
        pool = make_pool("p1", TOKEN_X, TOKEN_Y)
        _, tokens = make_registries([pool])
        with pytest.raises(EstimationError, match="Insufficient input"):
            uniswap_v2.estimate(pool, tokens, TOKEN_X, "0.000000000000000001")
