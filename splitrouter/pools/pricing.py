"""Approximate USD valuation through a reference asset.

To value an amount of any token:

    amount_usd = amount * reference_per_token * stable_per_reference

The reference asset is the wrapped native token and the stable asset is
a USD stablecoin. ReferencePricing keeps, for every token that has one,
the id of the token/reference pool plus the reference/stable pool id.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation

import structlog

from splitrouter.constants import USDC, WETH
from splitrouter.models.route import Route
from splitrouter.models.types import normalize_id
from splitrouter.pools.registry import PoolRegistry

logger = structlog.get_logger()

_CENTS = Decimal("0.01")


class ReferencePricing:
    """Token -> reference-pool lookup used for USD estimates."""

    def __init__(
        self,
        registry: PoolRegistry,
        reference_pool_ids: dict[str, str],
        reference: str = WETH,
        stable: str = USDC,
    ) -> None:
        self.registry = registry
        self.reference = normalize_id(reference)
        self.stable = normalize_id(stable)
        # token id -> id of the pool pairing it with the reference asset
        self.reference_pool_ids = reference_pool_ids

    @classmethod
    def from_registry(
        cls,
        registry: PoolRegistry,
        reference: str = WETH,
        stable: str = USDC,
    ) -> ReferencePricing:
        """Scan every pool for ones with the reference asset on a side.

        When a token has several reference pools, the last one scanned wins.
        """
        reference = normalize_id(reference)
        lookup: dict[str, str] = {}
        for pool in registry:
            if pool.token0 == reference:
                lookup[pool.token1] = pool.id
            elif pool.token1 == reference:
                lookup[pool.token0] = pool.id
        logger.debug("reference_pricing_built", tokens=len(lookup), reference=reference)
        return cls(registry, lookup, reference=reference, stable=stable)

    @property
    def stable_pool_id(self) -> str | None:
        """Id of the reference/stable pool."""
        return self.reference_pool_ids.get(self.stable)

    def _reference_per_token(self, token_id: str) -> Decimal | None:
        if token_id == self.reference:
            return Decimal(1)
        pool_id = self.reference_pool_ids.get(token_id)
        if pool_id is None:
            logger.warning("no_reference_pool", token=token_id)
            return None
        pool = self.registry.get_pool(pool_id)
        if pool is None:
            logger.warning("reference_pool_missing", token=token_id, pool=pool_id)
            return None
        return Decimal(pool.price_in(self.reference))

    def _stable_per_reference(self) -> Decimal | None:
        pool_id = self.stable_pool_id
        pool = self.registry.get_pool(pool_id) if pool_id else None
        if pool is None:
            logger.warning("stable_pool_missing", stable=self.stable)
            return None
        return Decimal(pool.price_in(self.stable))

    def estimate_usd(self, token_id: str, amount: str) -> str:
        """Estimate the USD value of a token amount.

        Returns:
            Value with two decimals, or "" when no price chain exists
        """
        try:
            reference_per_token = self._reference_per_token(normalize_id(token_id))
            stable_per_reference = self._stable_per_reference()
            if reference_per_token is None or stable_per_reference is None:
                return ""
            usd = Decimal(amount) * reference_per_token * stable_per_reference
            return str(usd.quantize(_CENTS))
        except (InvalidOperation, ValueError) as err:
            logger.warning("estimate_usd_failed", token=token_id, amount=amount, error=str(err))
            return ""

    def estimate_tokens_from_usd(self, token_id: str, usd_amount: str) -> str:
        """Estimate how many tokens a USD amount buys.

        Returns:
            Token amount with two decimals, or "" when no price chain exists
        """
        try:
            reference_per_token = self._reference_per_token(normalize_id(token_id))
            stable_per_reference = self._stable_per_reference()
            if not reference_per_token or not stable_per_reference:
                return ""
            tokens = Decimal(usd_amount) / stable_per_reference / reference_per_token
            return str(tokens.quantize(_CENTS))
        except (InvalidOperation, ValueError, ZeroDivisionError) as err:
            logger.warning(
                "estimate_tokens_failed", token=token_id, usd_amount=usd_amount, error=str(err)
            )
            return ""

    def token_usd_pool_ids(self, token_ids: Iterable[str]) -> set[str]:
        """Pool ids needed to value the given tokens in USD."""
        pool_ids: set[str] = set()
        for token_id in token_ids:
            if token_id != self.reference and token_id in self.reference_pool_ids:
                pool_ids.add(self.reference_pool_ids[token_id])
        if self.stable_pool_id is not None:
            pool_ids.add(self.stable_pool_id)
        return pool_ids

    def usd_pool_ids(self, routes: Iterable[Route]) -> set[str]:
        """Pool ids needed to USD-annotate every segment of the routes."""
        return self.token_usd_pool_ids(
            token_id for route in routes for seg in route for token_id in (seg.src, seg.dst)
        )


__all__ = ["ReferencePricing"]
