"""Route records produced by search, expansion and costing.

These are plain dataclasses so the transport layer can serialize them
with ``dataclasses.asdict``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypeAlias


@dataclass
class StackedSegment:
    """One hop carrying every pool that connects src and dst."""

    src: str
    dst: str
    pool_ids: list[str] = field(default_factory=list)


@dataclass
class Segment:
    """One hop through exactly one pool.

    Amounts and impact are exact decimal strings (impact in percent).
    The optional fields are filled in by costing and annotation passes.
    """

    src: str
    dst: str
    pool_id: str
    impact: str | None = None
    src_amount: str | None = None
    dst_amount: str | None = None
    src_usd: str | None = None
    dst_usd: str | None = None
    src_symbol: str | None = None
    dst_symbol: str | None = None
    gain_to_dest: float | None = None
    yield_to_dest: float | None = None
    is_preferred_external_route: bool = False
    is_best: bool = False

    @property
    def impact_fraction(self) -> float:
        """Impact as a fraction in [0, 1]; 0.0 when the segment is uncosted."""
        return 0.0 if self.impact is None else float(self.impact) / 100.0


StackedRoute: TypeAlias = list[StackedSegment]
Route: TypeAlias = list[Segment]


def route_path(route: Route) -> list[str]:
    """Token addresses visited by a route, source first."""
    if not route:
        return []
    return [route[0].src] + [seg.dst for seg in route]


def is_connected(route: Route) -> bool:
    """Check that each hop starts where the previous one ended."""
    return all(route[i].dst == route[i + 1].src for i in range(len(route) - 1))


__all__ = [
    "StackedSegment",
    "StackedRoute",
    "Segment",
    "Route",
    "route_path",
    "is_connected",
]
