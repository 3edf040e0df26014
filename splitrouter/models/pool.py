"""Pydantic models for pool and token snapshot data.

Field aliases follow the indexer's camelCase naming so snapshot rows can
be validated directly with ``Pool.model_validate(row)``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from splitrouter.models.types import DecimalStr, TokenId


class Token(BaseModel):
    """Token reference data."""

    model_config = ConfigDict(populate_by_name=True)

    id: TokenId
    symbol: str = ""
    name: str = ""
    # Some tokens report no decimals; costing a pool with such a token fails
    decimals: int | None = Field(default=None, ge=0, le=77)


class Pool(BaseModel):
    """A two-token constant-product pool (a.k.a. pair).

    Reserves are human-unit decimal strings (already divided by each
    token's decimals). token0_price is the amount of token0 per one
    token1, token1_price the amount of token1 per one token0.

    Reserves, prices and update markers are mutated in place by
    PoolRegistry.update_pools when fresher data arrives.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: TokenId
    token0: TokenId
    token1: TokenId
    reserve0: DecimalStr = "0"
    reserve1: DecimalStr = "0"
    reserve_usd: DecimalStr = Field(default="0", alias="reserveUSD")
    token0_price: DecimalStr = Field(default="0", alias="token0Price")
    token1_price: DecimalStr = Field(default="0", alias="token1Price")
    token0_symbol: str | None = None
    token1_symbol: str | None = None
    updated_at_ms: int | None = Field(default=None, alias="updatedAtMs")
    updated_at_block: int | None = Field(default=None, alias="updatedAtBlock")

    @model_validator(mode="before")
    @classmethod
    def _flatten_nested_tokens(cls, data: Any) -> Any:
        """Accept ``token0: {id, symbol, ...}`` as delivered by the indexer."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for side in ("token0", "token1"):
            token = data.get(side)
            if isinstance(token, dict):
                data[side] = token.get("id")
                if token.get("symbol") is not None:
                    data.setdefault(f"{side}_symbol", token["symbol"])
        return data

    def has_token(self, token_id: str) -> bool:
        return token_id in (self.token0, self.token1)

    def other_token(self, token_id: str) -> str:
        """Get the token on the opposite side of the pool."""
        if token_id == self.token0:
            return self.token1
        if token_id == self.token1:
            return self.token0
        raise ValueError(f"Token {token_id} not in pool {self.id}")

    def price_in(self, quote_token: str) -> str:
        """Units of quote_token paid for one unit of the other token."""
        if quote_token == self.token0:
            return self.token0_price
        if quote_token == self.token1:
            return self.token1_price
        raise ValueError(f"Token {quote_token} not in pool {self.id}")


__all__ = ["Pool", "Token"]
