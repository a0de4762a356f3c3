"""
Workflow Layout — deterministic layered auto-layout.

Sugiyama-style pipeline over a ``networkx`` digraph:

  1. Cycle removal (reverse DFS back-edges, visiting nodes in array order)
  2. Rank assignment (longest path from the roots)
  3. Ordering within ranks (array order, then barycenter sweeps)
  4. Coordinates (rank/order → top-left x/y with the configured spacing)

Prior positions are ignored entirely, so ``layout(layout(G))`` places
every node exactly where ``layout(G)`` did. Wherever two nodes tie
(DFS roots, topological order, equal barycenters) the node that comes
first in the workflow's node array wins.

Layout is only ever run on request; editing keeps manual positions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import Dict, List, Optional, Set, Tuple

import networkx as nx

from agentdesk.workflow.workflow_model import Position, WorkflowDefinition, WorkflowNode

logger = getLogger(__name__)

DIRECTIONS = ("LR", "TB", "RL", "BT")

# (sourcePosition, targetPosition) hints per direction.
HANDLE_POSITIONS = {
    "LR": ("right", "left"),
    "RL": ("left", "right"),
    "TB": ("bottom", "top"),
    "BT": ("top", "bottom"),
}

_SWEEPS = 4


@dataclass
class LayoutOptions:
    direction: str = "LR"
    node_width: float = 280.0
    node_height: float = 150.0
    node_spacing: float = 50.0
    rank_spacing: float = 50.0


@dataclass
class LayoutResult:
    """Top-left positions per node id plus the orientation hints."""

    positions: Dict[str, Tuple[float, float]] = field(default_factory=dict)
    ranks: Dict[str, int] = field(default_factory=dict)
    source_position: str = "right"
    target_position: str = "left"
    reversed_edges: Set[Tuple[str, str]] = field(default_factory=set)


# ============================================================================
# Phases
# ============================================================================


def _build_graph(definition: WorkflowDefinition) -> nx.DiGraph:
    graph = nx.DiGraph()
    for index, node in enumerate(definition.nodes):
        graph.add_node(node.id, index=index)
    for edge in definition.edges:
        if edge.source == edge.target:
            continue
        if edge.source in graph and edge.target in graph:
            graph.add_edge(edge.source, edge.target)
    return graph


def _remove_cycles(graph: nx.DiGraph) -> Tuple[nx.DiGraph, Set[Tuple[str, str]]]:
    """Acyclic copy of ``graph`` with DFS back-edges reversed."""
    back_edges: Set[Tuple[str, str]] = set()
    state: Dict[str, int] = {}  # 1 = on stack, 2 = done

    for root in graph.nodes:
        if root in state:
            continue
        state[root] = 1
        stack = [(root, iter(graph.successors(root)))]
        while stack:
            node, children = stack[-1]
            child = next(children, None)
            if child is None:
                state[node] = 2
                stack.pop()
            elif state.get(child) == 1:
                back_edges.add((node, child))
            elif child not in state:
                state[child] = 1
                stack.append((child, iter(graph.successors(child))))

    dag = nx.DiGraph()
    dag.add_nodes_from(graph.nodes(data=True))
    for src, tgt in graph.edges:
        if (src, tgt) in back_edges:
            dag.add_edge(tgt, src)
        else:
            dag.add_edge(src, tgt)
    return dag, back_edges


def _assign_ranks(dag: nx.DiGraph) -> Dict[str, int]:
    """Longest-path ranking: sources at 0, every node one past its deepest parent."""
    index = nx.get_node_attributes(dag, "index")
    ranks: Dict[str, int] = {}
    for node in nx.lexicographical_topological_sort(dag, key=index.get):
        preds = list(dag.predecessors(node))
        ranks[node] = max((ranks[p] + 1 for p in preds), default=0)
    return ranks


def _order_ranks(dag: nx.DiGraph, ranks: Dict[str, int]) -> List[List[str]]:
    """Order nodes within each rank to reduce crossings."""
    index = nx.get_node_attributes(dag, "index")
    rank_count = max(ranks.values(), default=-1) + 1
    layers: List[List[str]] = [[] for _ in range(rank_count)]
    for node in sorted(ranks, key=index.get):
        layers[ranks[node]].append(node)

    def _slot() -> Dict[str, int]:
        return {n: i for layer in layers for i, n in enumerate(layer)}

    def _sweep(rank_seq: range, neighbours) -> bool:
        changed = False
        for r in rank_seq:
            slot = _slot()
            layer = layers[r]

            def _key(n: str) -> Tuple[float, int]:
                adj = [slot[m] for m in neighbours(n)]
                bary = sum(adj) / len(adj) if adj else float(slot[n])
                return bary, slot[n]

            reordered = sorted(layer, key=_key)
            if reordered != layer:
                layers[r] = reordered
                changed = True
        return changed

    for _ in range(_SWEEPS):
        down = _sweep(range(1, rank_count), dag.predecessors)
        up = _sweep(range(rank_count - 2, -1, -1), dag.successors)
        if not (down or up):
            break
    return layers


def _assign_coordinates(
    layers: List[List[str]],
    sizes: Dict[str, Tuple[float, float]],
    options: LayoutOptions,
    direction: str,
) -> Dict[str, Tuple[float, float]]:
    horizontal = direction in ("LR", "RL")

    def _along(n: str) -> float:  # extent along the rank axis
        w, h = sizes[n]
        return w if horizontal else h

    def _across(n: str) -> float:  # extent within a rank
        w, h = sizes[n]
        return h if horizontal else w

    rank_extent = [max((_along(n) for n in layer), default=0.0) for layer in layers]
    rank_center: List[float] = []
    offset = 0.0
    for extent in rank_extent:
        rank_center.append(offset + extent / 2)
        offset += extent + options.rank_spacing
    total_along = max(offset - options.rank_spacing, 0.0)

    centers: Dict[str, Tuple[float, float]] = {}
    for r, layer in enumerate(layers):
        span = sum(_across(n) for n in layer) + options.node_spacing * max(len(layer) - 1, 0)
        cursor = -span / 2
        for n in layer:
            across = cursor + _across(n) / 2
            cursor += _across(n) + options.node_spacing
            along = rank_center[r]
            if direction in ("RL", "BT"):
                along = total_along - along
            centers[n] = (along, across) if horizontal else (across, along)

    positions = {
        n: (cx - sizes[n][0] / 2, cy - sizes[n][1] / 2) for n, (cx, cy) in centers.items()
    }
    if positions:
        min_x = min(x for x, _ in positions.values())
        min_y = min(y for _, y in positions.values())
        positions = {n: (round(x - min_x, 2), round(y - min_y, 2)) for n, (x, y) in positions.items()}
    return positions


# ============================================================================
# Public API
# ============================================================================


def compute_layout(
    definition: WorkflowDefinition,
    options: Optional[LayoutOptions] = None,
) -> LayoutResult:
    """Compute positions for every node of ``definition``; nothing is modified."""
    opts = options or LayoutOptions()
    direction = opts.direction.upper()
    if direction not in DIRECTIONS:
        logger.warning(f"Unknown layout direction '{opts.direction}', using LR")
        direction = "LR"

    sizes = {
        n.id: n.effective_size(opts.node_width, opts.node_height) for n in definition.nodes
    }
    graph = _build_graph(definition)
    dag, reversed_edges = _remove_cycles(graph)
    ranks = _assign_ranks(dag)
    layers = _order_ranks(dag, ranks)
    positions = _assign_coordinates(layers, sizes, opts, direction)

    source_pos, target_pos = HANDLE_POSITIONS[direction]
    logger.debug(
        f"Layout {direction}: {len(positions)} nodes in {len(layers)} ranks, "
        f"{len(reversed_edges)} cycle edge(s) reversed"
    )
    return LayoutResult(
        positions=positions,
        ranks=ranks,
        source_position=source_pos,
        target_position=target_pos,
        reversed_edges=reversed_edges,
    )


def apply_layout(
    definition: WorkflowDefinition,
    options: Optional[LayoutOptions] = None,
) -> WorkflowDefinition:
    """Copy of ``definition`` with positions and handle hints replaced."""
    result = compute_layout(definition, options)
    laid_out = definition.copy_graph()
    for node in laid_out.nodes:
        _place(node, result)
    return laid_out


def _place(node: WorkflowNode, result: LayoutResult) -> None:
    x, y = result.positions.get(node.id, (node.position.x, node.position.y))
    node.position = Position(x=x, y=y)
    node.source_position = result.source_position
    node.target_position = result.target_position
