"""Pool management package.

Provides the pool and token registries plus reference-asset USD pricing.
"""

from .pricing import ReferencePricing
from .registry import PoolDataSource, PoolRegistry, TokenRegistry, build_registries

__all__ = [
    "PoolDataSource",
    "PoolRegistry",
    "TokenRegistry",
    "build_registries",
    "ReferencePricing",
]
