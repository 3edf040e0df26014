"""Exception hierarchy for the routing core.

Reported conditions (validation, graph lookup, estimation) are raised
internally and resolved to empty or filtered results by the public
functions that own them. InvariantViolation is never caught inside the
package.
"""


class RoutingError(Exception):
    """Base class for routing errors."""

    pass


class RouteValidationError(RoutingError, ValueError):
    """A route request is malformed (empty, same-token or excluded endpoint)."""

    pass


class GraphLookupError(RoutingError, LookupError):
    """A requested token is not present in the pool graph."""

    pass


class EstimationError(RoutingError, ArithmeticError):
    """Pricing a single hop failed.

    Raised for a missing pool, missing token decimals, malformed or
    non-positive reserves, or arithmetic overflow. The owning route is
    dropped.
    """

    def __init__(self, message: str, pool_id: str | None = None) -> None:
        super().__init__(message)
        self.pool_id = pool_id


class InvariantViolation(RoutingError, RuntimeError):
    """A logic or data-consistency bug was detected. Always fatal."""

    pass


class StalenessWarning(UserWarning):
    """Pool data older than the freshness window was used without refresh."""

    pass


__all__ = [
    "RoutingError",
    "RouteValidationError",
    "GraphLookupError",
    "EstimationError",
    "InvariantViolation",
    "StalenessWarning",
]
