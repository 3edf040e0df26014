"""Trade tree: single-path routes merged into one multi-path allocation.

Routes sharing a source token are merged by common prefix. Each tree
node stands for one token reached through one pool from its parent;
routes that take different pools between the same two tokens become
sibling branches. Every non-root node records, per route id passing
through it, the gain to destination of the rest of that route.

Nodes live in an arena (``TradeTree.nodes``) and refer to each other by
index, so parent links never form reference cycles. Pruning detaches a
node from its parent; detached nodes stay in the arena but are no longer
reachable from the root.

Costing splits a trade amount at every branching node in proportion to
``max_gain_to_dest ** SPLIT_EXPONENT`` of each child and prices each
child's share through that child's pool, level by level.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Iterator
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any

import structlog

from splitrouter.amm.uniswap_v2 import to_integer_amount, to_significant
from splitrouter.constants import SPLIT_EXPONENT
from splitrouter.errors import EstimationError, InvariantViolation
from splitrouter.models.result import TradeYield
from splitrouter.models.route import Route
from splitrouter.routing.quoting import DEFAULT_REFRESH, PricingContext, RefreshPolicy, refresh_pool_ids

logger = structlog.get_logger()

ROOT = 0


@dataclass
class TradeAllocation:
    """Share of one trade flowing into a node.

    Attributes:
        proportion: Fraction of the parent's output routed here
        input_amount: Amount of the parent token sent into this node's pool
        output_amount: Amount of this node's token received
        impact: Price impact of this hop (percent), None when not priced
        input_amount_exact: Input as actually priced (truncated to decimals)
    """

    proportion: float
    input_amount: str
    output_amount: str
    impact: str | None = None
    input_amount_exact: str | None = None
    input_usd: str | None = None
    output_usd: str | None = None


@dataclass
class TradeTreeNode:
    """One token position in the trade tree.

    The root has no pool and an empty gain_to_dest. amount, amount_usd
    and impact describe the full single-path amount of the first route
    that created the node.
    """

    id: str
    token: str
    symbol: str | None = None
    amount: str | None = None
    amount_usd: str | None = None
    pool_id: str | None = None
    impact: str | None = None
    is_best: bool = False
    is_preferred_external_route: bool = False
    # route id -> gain to destination from this node
    gain_to_dest: dict[int, float] = field(default_factory=dict)
    # trade id -> allocation
    trades: dict[str, TradeAllocation] = field(default_factory=dict)
    children: list[int] = field(default_factory=list)
    parent: int | None = None

    @property
    def max_gain_to_dest(self) -> float:
        return max(self.gain_to_dest.values(), default=0.0)


@dataclass
class TradeProportion:
    """Split decision for one child of a node."""

    proportion: float
    max_gain_to_dest: float
    child: int


class TradeTree:
    """Arena of trade tree nodes rooted at index 0."""

    def __init__(self) -> None:
        self.nodes: list[TradeTreeNode] = []

    @property
    def root(self) -> TradeTreeNode:
        return self.nodes[ROOT]

    def add_node(self, node: TradeTreeNode, parent: int | None = None) -> int:
        """Append a node, linking it under parent when given."""
        index = len(self.nodes)
        node.parent = parent
        self.nodes.append(node)
        if parent is not None:
            self.nodes[parent].children.append(index)
        return index

    def find_child(self, parent: int, token: str, pool_id: str) -> int | None:
        for child in self.nodes[parent].children:
            node = self.nodes[child]
            if node.token == token and node.pool_id == pool_id:
                return child
        return None

    def detach(self, index: int) -> None:
        """Remove a node (and its subtree) from its parent's children."""
        node = self.nodes[index]
        if node.parent is None:
            return
        self.nodes[node.parent].children.remove(index)
        node.parent = None

    def walk_bfs(self) -> Iterator[tuple[int, int]]:
        """Yield (index, level) for every node reachable from the root."""
        if not self.nodes:
            return
        frontier = [ROOT]
        level = 0
        while frontier:
            next_frontier: list[int] = []
            for index in frontier:
                yield index, level
                next_frontier.extend(self.nodes[index].children)
            frontier = next_frontier
            level += 1

    def levels(self) -> list[list[int]]:
        """Reachable node indices grouped by depth, root level first."""
        levels: list[list[int]] = []
        for index, level in self.walk_bfs():
            if level == len(levels):
                levels.append([])
            levels[level].append(index)
        return levels

    def leaves(self) -> list[int]:
        """Reachable nodes without children, excluding the root."""
        return [
            index
            for index, _ in self.walk_bfs()
            if index != ROOT and not self.nodes[index].children
        ]

    def total_route_gains(self) -> dict[int, float]:
        """Route id -> gain over the whole route, read from the root's children."""
        gains: dict[int, float] = {}
        for child in self.root.children:
            gains.update(self.nodes[child].gain_to_dest)
        return gains

    def pool_ids(self) -> set[str]:
        return {
            self.nodes[index].pool_id
            for index, _ in self.walk_bfs()
            if self.nodes[index].pool_id is not None
        }

    def __len__(self) -> int:
        """Number of nodes reachable from the root."""
        return sum(1 for _ in self.walk_bfs())


def build_trade_tree(routes: list[Route]) -> TradeTree | None:
    """Merge routes into a trade tree.

    Route ids are the routes' positions in ``routes``. Children are keyed
    by (token, pool id), so routes that reach the same token through
    different pools become sibling nodes rather than sharing one.
    Segments should carry gain_to_dest (see
    annotate_routes_with_gain_to_dest); a missing gain is recorded as 0.0.

    Returns:
        The tree, or None when there are no non-empty routes

    Raises:
        InvariantViolation: If routes do not all start at the same token
    """
    tree: TradeTree | None = None
    next_id = 0

    for route_id, route in enumerate(routes):
        if not route:
            continue

        first = route[0]
        if tree is None:
            tree = TradeTree()
            tree.add_node(
                TradeTreeNode(
                    id=str(next_id),
                    token=first.src,
                    symbol=first.src_symbol,
                    amount=first.src_amount,
                    amount_usd=first.src_usd,
                )
            )
            next_id += 1
        elif tree.root.token != first.src:
            raise InvariantViolation(
                f"Route {route_id} starts at {first.src}, "
                f"but the trade tree is rooted at {tree.root.token}"
            )

        root = tree.root
        root.is_best = root.is_best or first.is_best
        root.is_preferred_external_route = (
            root.is_preferred_external_route or first.is_preferred_external_route
        )

        index = ROOT
        for seg in route:
            child = tree.find_child(index, seg.dst, seg.pool_id)
            if child is None:
                child = tree.add_node(
                    TradeTreeNode(
                        id=str(next_id),
                        token=seg.dst,
                        symbol=seg.dst_symbol,
                        amount=seg.dst_amount,
                        amount_usd=seg.dst_usd,
                        pool_id=seg.pool_id,
                        impact=seg.impact,
                    ),
                    parent=index,
                )
                next_id += 1

            node = tree.nodes[child]
            node.is_best = node.is_best or seg.is_best
            node.is_preferred_external_route = (
                node.is_preferred_external_route or seg.is_preferred_external_route
            )
            node.gain_to_dest[route_id] = seg.gain_to_dest if seg.gain_to_dest is not None else 0.0
            index = child

    if tree is not None:
        logger.debug("trade_tree_built", routes=len(routes), nodes=len(tree.nodes))
    return tree


def get_trade_proportions(
    tree: TradeTree, index: int, split_exponent: int = SPLIT_EXPONENT
) -> list[TradeProportion]:
    """Decide how a node's output is split across its children.

    A single child takes everything. Otherwise each child is weighted by
    ``max_gain_to_dest ** split_exponent`` and the weights are normalized.
    A child gaining more than 1.0 signals a pricing anomaly; the largest
    such child then takes the whole amount.
    """
    children = tree.nodes[index].children
    proportions = [
        TradeProportion(proportion=0.0, max_gain_to_dest=tree.nodes[c].max_gain_to_dest, child=c)
        for c in children
    ]
    if len(proportions) == 1:
        proportions[0].proportion = 1.0
        return proportions
    if not proportions:
        return proportions

    above_unity = [p for p in proportions if p.max_gain_to_dest > 1.0]
    if above_unity:
        best = max(above_unity, key=lambda p: p.max_gain_to_dest)
        logger.warning(
            "trade_gain_exceeds_unity",
            gain_to_dest=best.max_gain_to_dest,
            token=tree.nodes[best.child].token,
            pool=tree.nodes[best.child].pool_id,
        )
        best.proportion = 1.0
        return proportions

    weights = [p.max_gain_to_dest**split_exponent for p in proportions]
    total = sum(weights)
    for p, weight in zip(proportions, weights):
        # All-zero gains cannot rank children; split evenly
        p.proportion = weight / total if total > 0 else 1.0 / len(proportions)
    return proportions


def _next_trade_id(trades: dict[str, TradeAllocation]) -> str:
    numeric = [int(trade_id) for trade_id in trades if trade_id.isdigit()]
    return str(max(numeric, default=-1) + 1)


def _below_one_unit(context: PricingContext, token_id: str, amount: str) -> bool:
    """Whether amount truncates to zero base units of token_id."""
    token = context.tokens.get_token(token_id)
    if token is None or token.decimals is None:
        return False
    return to_integer_amount(amount, token.decimals) == 0


def cost_trade_tree(
    tree: TradeTree,
    amount: str,
    context: PricingContext,
    split_exponent: int = SPLIT_EXPONENT,
) -> str:
    """Price a trade of ``amount`` source tokens split across the tree.

    Nodes are visited breadth first. The root receives the full amount;
    each child receives its proportion of its parent's output and is
    priced through its own pool. Children whose share is zero, or less
    than one base unit of the parent token, are recorded with zero
    amounts and not priced.

    Returns:
        The trade id the allocations were stored under

    Raises:
        InvariantViolation: If a parent has no allocation for the trade,
            a non-root node has no pool, or a hop fails to price
    """
    root = tree.root
    trade_id = _next_trade_id(root.trades)
    root.trades[trade_id] = TradeAllocation(proportion=1.0, input_amount=amount, output_amount=amount)

    priced = 0
    for level in tree.levels():
        for index in level:
            parent = tree.nodes[index]
            for share in get_trade_proportions(tree, index, split_exponent):
                child = tree.nodes[share.child]
                parent_trade = parent.trades.get(trade_id)
                if parent_trade is None:
                    raise InvariantViolation(
                        f"Node {parent.id} ({parent.token}) has no allocation for trade {trade_id}"
                    )
                if child.pool_id is None:
                    raise InvariantViolation(f"Node {child.id} ({child.token}) has no pool")

                input_amount = Decimal(repr(share.proportion)) * Decimal(parent_trade.output_amount)
                input_str = to_significant(input_amount)
                if input_amount == 0 or _below_one_unit(context, parent.token, input_str):
                    child.trades[trade_id] = TradeAllocation(
                        proportion=share.proportion, input_amount="0", output_amount="0"
                    )
                    continue

                try:
                    estimate = context.estimate(child.pool_id, parent.token, input_str)
                except EstimationError as err:
                    raise InvariantViolation(
                        f"Failed to price node {child.id} ({parent.token} -> {child.token} "
                        f"via {child.pool_id}): {err}"
                    ) from err

                child.trades[trade_id] = TradeAllocation(
                    proportion=share.proportion,
                    input_amount=input_str,
                    output_amount=estimate.amount_out,
                    impact=estimate.impact,
                    input_amount_exact=estimate.amount_in,
                )
                priced += 1

    logger.debug("trade_tree_costed", trade_id=trade_id, amount=amount, priced_hops=priced)
    return trade_id


async def annotate_trade_tree_usd(
    tree: TradeTree,
    context: PricingContext,
    refresh: RefreshPolicy = DEFAULT_REFRESH,
) -> None:
    """Fill input_usd / output_usd on every allocation in the tree."""
    pricing = context.pricing
    if pricing is None:
        logger.debug("usd_annotation_skipped", reason="no reference pricing")
        return

    tokens = {tree.nodes[index].token for index, _ in tree.walk_bfs()}
    await refresh_pool_ids(context, pricing.token_usd_pool_ids(tokens), refresh)

    for index, _ in tree.walk_bfs():
        node = tree.nodes[index]
        parent = tree.nodes[node.parent] if node.parent is not None else None
        for trade in node.trades.values():
            if parent is not None:
                trade.input_usd = pricing.estimate_usd(
                    parent.token, trade.input_amount_exact or trade.input_amount
                )
            trade.output_usd = pricing.estimate_usd(node.token, trade.output_amount)


def prune_tree_route(tree: TradeTree, route_id: int) -> int:
    """Remove one route from the tree.

    The route's gain entry is deleted from every node; nodes left without
    any route are detached from their parents.

    Returns:
        Number of nodes detached
    """
    emptied: list[int] = []
    for index, _ in tree.walk_bfs():
        gains = tree.nodes[index].gain_to_dest
        if route_id in gains:
            del gains[route_id]
            if not gains:
                emptied.append(index)

    for index in emptied:
        tree.detach(index)
    return len(emptied)


def get_num_routes(tree: TradeTree) -> int:
    return len(tree.total_route_gains())


def get_tree_route_path(tree: TradeTree, route_id: int) -> list[str]:
    """Symbols of the tokens one route passes through, source first."""
    path: list[str] = []
    index = ROOT
    while True:
        node = tree.nodes[index]
        next_index = next(
            (c for c in node.children if route_id in tree.nodes[c].gain_to_dest), None
        )
        if next_index is None and not path:
            return path
        path.append(node.symbol or "<unknown>")
        if next_index is None:
            return path
        index = next_index


def clone_trade_tree(tree: TradeTree, exact: bool = False) -> TradeTree:
    """Copy the reachable part of a tree.

    Args:
        tree: Tree to copy
        exact: Keep node ids; otherwise every node gets a fresh uuid4 id
    """
    clone = TradeTree()
    mapping: dict[int, int] = {}
    for index, _ in tree.walk_bfs():
        node = tree.nodes[index]
        copied = TradeTreeNode(
            id=node.id if exact else str(uuid.uuid4()),
            token=node.token,
            symbol=node.symbol,
            amount=node.amount,
            amount_usd=node.amount_usd,
            pool_id=node.pool_id,
            impact=node.impact,
            is_best=node.is_best,
            is_preferred_external_route=node.is_preferred_external_route,
            gain_to_dest=dict(node.gain_to_dest),
            trades=copy.deepcopy(node.trades),
        )
        parent = mapping[node.parent] if node.parent is not None else None
        mapping[index] = clone.add_node(copied, parent)
    return clone


def multi_path_yield(tree: TradeTree, trade_id: str | None = None) -> TradeYield:
    """Total output of a costed trade, summed over the leaves.

    Args:
        tree: Costed trade tree
        trade_id: Trade to total (default: the root's first trade)
    """
    if trade_id is None:
        trade_id = next(iter(tree.root.trades), None)
    result = TradeYield()
    if trade_id is None:
        return result

    for index in tree.leaves():
        trade = tree.nodes[index].trades.get(trade_id)
        if trade is None:
            continue
        result.token += float(trade.output_amount)
        result.usd += float(trade.output_usd) if trade.output_usd else 0.0
    return result


def tree_to_dict(tree: TradeTree, index: int = ROOT) -> dict[str, Any]:
    """Nested plain-dict form of the reachable tree, for serialization."""
    node = tree.nodes[index]
    data = asdict(node)
    data.pop("parent")
    data["gain_to_dest"] = {str(route_id): gain for route_id, gain in node.gain_to_dest.items()}
    data["children"] = [tree_to_dict(tree, child) for child in node.children]
    return data


__all__ = [
    "TradeAllocation",
    "TradeTreeNode",
    "TradeProportion",
    "TradeTree",
    "build_trade_tree",
    "get_trade_proportions",
    "cost_trade_tree",
    "annotate_trade_tree_usd",
    "prune_tree_route",
    "get_num_routes",
    "get_tree_route_path",
    "clone_trade_tree",
    "multi_path_yield",
    "tree_to_dict",
]
