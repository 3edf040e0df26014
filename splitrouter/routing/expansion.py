"""Expansion of stacked routes into concrete single-pool routes.

A stacked route such as

    src --> mid --> dst
        p1      p2
                p3

implies two concrete routes, ``src -p1-> mid -p2-> dst`` and
``src -p1-> mid -p3-> dst``. Each stacked route yields the product of
its per-hop pool counts.
"""

from __future__ import annotations

from collections.abc import Iterator

from splitrouter.models.route import Route, Segment, StackedRoute


def _iter_expansions(stacked_route: StackedRoute) -> Iterator[Route]:
    """Enumerate pool combinations with a mixed-radix counter.

    Digit i ranges over the pools of segment i. The least-significant
    digit is the first segment: increment it, and on overflow reset it to
    zero and carry into the next one. Enumeration stops when the most
    significant digit overflows.
    """
    if not stacked_route:
        return
    counts = [len(seg.pool_ids) for seg in stacked_route]
    if any(count == 0 for count in counts):
        return

    indices = [0] * len(stacked_route)
    last = len(stacked_route) - 1
    while indices[last] < counts[last]:
        yield [
            Segment(src=seg.src, dst=seg.dst, pool_id=seg.pool_ids[indices[i]])
            for i, seg in enumerate(stacked_route)
        ]

        for i in range(len(indices)):
            indices[i] += 1
            if indices[i] < counts[i] or i == last:
                break
            indices[i] = 0


def expand_route(stacked_route: StackedRoute) -> list[Route]:
    """Expand one stacked route into every concrete route it implies."""
    return list(_iter_expansions(stacked_route))


def expand_routes(stacked_routes: list[StackedRoute]) -> list[Route]:
    """Expand stacked routes into concrete routes, preserving input order."""
    routes: list[Route] = []
    for stacked_route in stacked_routes:
        routes.extend(_iter_expansions(stacked_route))
    return routes


__all__ = ["expand_route", "expand_routes"]
