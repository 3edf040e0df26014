"""Multi-path constant-product route finder."""

from splitrouter.config import DEFAULT_ROUTER_CONFIG, RouterConfig, configure_logging
from splitrouter.router import MultiPathRouter

__version__ = "0.1.0"
__all__ = [
    "MultiPathRouter",
    "RouterConfig",
    "DEFAULT_ROUTER_CONFIG",
    "configure_logging",
    "__version__",
]
