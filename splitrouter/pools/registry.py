"""Pool and token registries backing route search and costing.

PoolRegistry holds the current pool snapshot keyed by pool id. Reserves
are refreshed in place through update_pools so that every route, tree
and graph edge that references a pool id sees the new data. Graph
construction is delegated to PoolGraph (splitrouter.routing.graph).
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Protocol

import structlog
from pydantic import ValidationError

from splitrouter.constants import NO_BLOCK_NUM
from splitrouter.models.pool import Pool, Token
from splitrouter.models.types import normalize_id

logger = structlog.get_logger()


class PoolDataSource(Protocol):
    """Upstream source of fresh pool data (e.g. an indexer client).

    Implementations fetch every requested pool in a single batched call.
    A block_number of NO_BLOCK_NUM means "latest".
    """

    async def fetch_pools(self, pool_ids: set[str], block_number: int = NO_BLOCK_NUM) -> list[Pool]: ...


class PoolRegistry:
    """Registry of pools keyed by lowercase pool id."""

    def __init__(self, pools: Iterable[Pool] | None = None) -> None:
        self._pools: dict[str, Pool] = {}
        if pools:
            for pool in pools:
                self.add_pool(pool)

    def add_pool(self, pool: Pool) -> None:
        """Add a pool, replacing any pool with the same id."""
        if pool.id in self._pools:
            logger.debug("pool_replaced", pool=pool.id)
        self._pools[pool.id] = pool

    def get_pool(self, pool_id: str) -> Pool | None:
        return self._pools.get(normalize_id(pool_id))

    def get_pool_ids(self) -> list[str]:
        return list(self._pools)

    def __iter__(self) -> Iterator[Pool]:
        return iter(self._pools.values())

    def __len__(self) -> int:
        return len(self._pools)

    def __contains__(self, pool_id: object) -> bool:
        return isinstance(pool_id, str) and normalize_id(pool_id) in self._pools

    def update_pools(
        self,
        updated: Iterable[Pool],
        updated_at_ms: int | None = None,
        block_number: int = NO_BLOCK_NUM,
    ) -> int:
        """Apply fresh reserves and prices to existing pools in place.

        Unknown pool ids are added. Every touched pool gets updated_at_ms
        set (default: now) and, when block_number is given, updated_at_block.

        Returns:
            Number of pools updated
        """
        if updated_at_ms is None:
            updated_at_ms = int(time.time() * 1000)

        count = 0
        for fresh in updated:
            pool = self._pools.get(fresh.id)
            if pool is None:
                self._pools[fresh.id] = fresh
                pool = fresh
            else:
                pool.reserve0 = fresh.reserve0
                pool.reserve1 = fresh.reserve1
                pool.reserve_usd = fresh.reserve_usd
                pool.token0_price = fresh.token0_price
                pool.token1_price = fresh.token1_price
            pool.updated_at_ms = updated_at_ms
            if block_number != NO_BLOCK_NUM:
                pool.updated_at_block = block_number
            count += 1
        return count

    @property
    def pool_count(self) -> int:
        return len(self._pools)


class TokenRegistry:
    """Registry of token reference data keyed by lowercase token id."""

    def __init__(self, tokens: Iterable[Token] | None = None) -> None:
        self._tokens: dict[str, Token] = {}
        if tokens:
            for token in tokens:
                self.add_token(token)

    def add_token(self, token: Token) -> None:
        self._tokens[token.id] = token

    def get_token(self, token_id: str) -> Token | None:
        return self._tokens.get(normalize_id(token_id))

    def get_symbol(self, token_id: str) -> str:
        """Get a token's symbol, or "" when unknown."""
        token = self.get_token(token_id)
        return token.symbol if token is not None else ""

    def __len__(self) -> int:
        return len(self._tokens)


def build_registries(
    pool_rows: Iterable[Mapping[str, Any]],
    token_rows: Iterable[Mapping[str, Any]] = (),
) -> tuple[PoolRegistry, TokenRegistry]:
    """Build registries from raw snapshot rows.

    Rows that fail validation are skipped with a warning. Tokens embedded
    in pool rows (``token0: {id, symbol, decimals}``) are registered too
    unless a standalone token row already describes them.

    Returns:
        Tuple of (PoolRegistry, TokenRegistry)
    """
    pools = PoolRegistry()
    tokens = TokenRegistry()

    for row in token_rows:
        try:
            tokens.add_token(Token.model_validate(row))
        except ValidationError as err:
            logger.warning("token_row_invalid", row_id=row.get("id"), errors=err.error_count())

    skipped = 0
    for row in pool_rows:
        try:
            pool = Pool.model_validate(row)
        except ValidationError as err:
            skipped += 1
            logger.debug("pool_row_invalid", row_id=row.get("id"), errors=err.error_count())
            continue
        pools.add_pool(pool)

        for side in ("token0", "token1"):
            embedded = row.get(side)
            if isinstance(embedded, Mapping) and tokens.get_token(str(embedded.get("id", ""))) is None:
                try:
                    tokens.add_token(Token.model_validate(embedded))
                except ValidationError:
                    logger.debug("embedded_token_invalid", pool=pool.id, side=side)

    if skipped:
        logger.warning("pool_rows_skipped", skipped=skipped, loaded=len(pools))

    return pools, tokens


__all__ = ["PoolDataSource", "PoolRegistry", "TokenRegistry", "build_registries"]
