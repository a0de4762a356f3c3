"""
Workflow Validator — structural checks and save-time normalisation.

Two separate concerns live here:

1. ``validate_graph`` decides whether a graph is well-formed enough to
   execute. Its result gates remote validation / EL preview, never a
   local save.
2. ``prepare_for_save`` silently heals what the editor tolerates while
   editing: edges with dangling endpoints or stale branch handles are
   dropped, and nodes on a GPT-5 model get their temperature raised to
   the floor. Nothing found here is reported as an error.

No function in this module raises for a structurally typed graph.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set, Tuple

import networkx as nx

from agentdesk.workflow.nodes.base import NodeRegistry, get_node_registry
from agentdesk.workflow.nodes.model_nodes import DEFAULT_TEMPERATURE
from agentdesk.workflow.workflow_model import WorkflowDefinition

if TYPE_CHECKING:
    from agentdesk.workflow.editor_cache import EditorCache

logger = getLogger(__name__)

GPT5_MARKER = "gpt-5"
DEFAULT_MIN_TEMPERATURE = 1.0

# Kinds that only finish a turn when nothing is wired after them.
_SOFT_TERMINALS = {"reply"}


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}


@dataclass
class PrunedEdge:
    edge_id: str
    source: str
    target: str
    reason: str


@dataclass
class SavePreparation:
    """Graph ready to serialise plus what was changed to get there."""

    definition: WorkflowDefinition
    pruned_edges: List[PrunedEdge] = field(default_factory=list)
    normalized_nodes: List[str] = field(default_factory=list)

    @property
    def pruned_edge_ids(self) -> List[str]:
        return [p.edge_id for p in self.pruned_edges]


# ============================================================================
# Graph helpers
# ============================================================================


def build_nx_graph(definition: WorkflowDefinition, include_self_loops: bool = True) -> nx.DiGraph:
    """Directed graph over node ids, in node order; dangling edges are skipped."""
    graph = nx.DiGraph()
    for node in definition.nodes:
        graph.add_node(node.id)
    for edge in definition.edges:
        if edge.source not in graph or edge.target not in graph:
            continue
        if edge.source == edge.target and not include_self_loops:
            continue
        graph.add_edge(edge.source, edge.target)
    return graph


def live_handles(
    definition: WorkflowDefinition,
    node_id: str,
    registry: Optional[NodeRegistry] = None,
) -> Optional[Set[str]]:
    """Handle ids currently declared by a node with named branches.

    ``None`` means the node's edges are not checked by handle.
    """
    node = definition.get_node(node_id)
    if node is None:
        return None
    descriptor = (registry or get_node_registry()).describe(node.type)
    if not descriptor.has_named_handles:
        return None
    return set(descriptor.outputs.handles(node.config))


# ============================================================================
# Pruning
# ============================================================================


def find_orphaned_edges(
    definition: WorkflowDefinition,
    registry: Optional[NodeRegistry] = None,
) -> List[PrunedEdge]:
    """Edges that would be dropped at save time, with the reason."""
    return [p for _, p in _find_orphans(definition, registry)]


def _find_orphans(
    definition: WorkflowDefinition,
    registry: Optional[NodeRegistry],
) -> List[Tuple[int, PrunedEdge]]:
    reg = registry or get_node_registry()
    node_ids = set(definition.node_ids())
    handle_cache: Dict[str, Optional[Set[str]]] = {}
    orphaned: List[Tuple[int, PrunedEdge]] = []

    for index, edge in enumerate(definition.edges):
        if edge.source not in node_ids or edge.target not in node_ids:
            missing = edge.source if edge.source not in node_ids else edge.target
            orphaned.append((index, PrunedEdge(
                edge.id, edge.source, edge.target, f"node '{missing}' does not exist",
            )))
            continue
        if edge.source_handle is None:
            continue
        if edge.source not in handle_cache:
            handle_cache[edge.source] = live_handles(definition, edge.source, reg)
        handles = handle_cache[edge.source]
        if handles is not None and edge.source_handle not in handles:
            orphaned.append((index, PrunedEdge(
                edge.id, edge.source, edge.target,
                f"branch '{edge.source_handle}' no longer exists on '{edge.source}'",
            )))
    return orphaned


def prune_for_save(
    definition: WorkflowDefinition,
    registry: Optional[NodeRegistry] = None,
) -> WorkflowDefinition:
    """Copy of ``definition`` without dangling or stale-handle edges."""
    pruned, _ = _prune(definition, registry)
    return pruned


def _prune(
    definition: WorkflowDefinition,
    registry: Optional[NodeRegistry],
    quiet: bool = False,
) -> Tuple[WorkflowDefinition, List[PrunedEdge]]:
    found = _find_orphans(definition, registry)
    drop = {index for index, _ in found}
    orphaned = [p for _, p in found]
    result = definition.copy_graph()
    # Edge ids are not guaranteed unique in stored graphs; drop by position.
    result.edges = [e for i, e in enumerate(result.edges) if i not in drop]
    if quiet:
        return result, orphaned
    for p in orphaned:
        logger.warning(f"Pruned edge {p.edge_id} ({p.source} → {p.target}): {p.reason}")
    if drop:
        logger.info(f"Pruned {len(orphaned)} orphaned edge(s) before save")
    return result, orphaned


# ============================================================================
# GPT-5 temperature floor
# ============================================================================


def resolve_model_display_name(
    config: Dict[str, Any],
    cache: Optional["EditorCache"] = None,
) -> Optional[str]:
    """Stamped display name, else the cached model's name, else the model code."""
    name = config.get("modelDisplayName")
    if name:
        return str(name)
    if cache is not None:
        cached = cache.resolve_model_name(config.get("modelId"))
        if cached:
            return cached
    model = config.get("model")
    return str(model) if model else None


def normalize_temperatures(
    definition: WorkflowDefinition,
    cache: Optional["EditorCache"] = None,
    min_temperature: float = DEFAULT_MIN_TEMPERATURE,
) -> List[str]:
    """Raise ``temperature`` to ``min_temperature`` on GPT-5 nodes, in place.

    A node without a temperature runs at the default (0.7), so it is
    stamped too. Returns the ids of the nodes that changed.
    """
    changed: List[str] = []
    for node in definition.nodes:
        config = node.config
        name = resolve_model_display_name(config, cache)
        if not name or GPT5_MARKER not in name.lower():
            continue
        raw = config.get("temperature")
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            current = float(raw)
        else:
            current = DEFAULT_TEMPERATURE
        if current < min_temperature:
            config["temperature"] = min_temperature
            changed.append(node.id)
            logger.warning(
                f"Node {node.id} uses {name}: temperature {raw!r} raised to {min_temperature:g}"
            )
    return changed


def prepare_for_save(
    definition: WorkflowDefinition,
    cache: Optional["EditorCache"] = None,
    registry: Optional[NodeRegistry] = None,
    min_temperature: float = DEFAULT_MIN_TEMPERATURE,
) -> SavePreparation:
    """Normalise temperatures and prune edges on a copy of ``definition``."""
    pruned, orphaned = _prune(definition, registry)
    normalized = normalize_temperatures(pruned, cache, min_temperature)
    return SavePreparation(definition=pruned, pruned_edges=orphaned, normalized_nodes=normalized)


# ============================================================================
# Validation
# ============================================================================


def validate_graph(
    definition: WorkflowDefinition,
    registry: Optional[NodeRegistry] = None,
) -> ValidationResult:
    """Check that the graph can execute.

    Runs on the pruned view of the graph, since orphaned edges are
    healed at save time rather than reported. Only a missing or
    duplicated Start node is an error; everything else is advisory.
    """
    reg = registry or get_node_registry()
    graph_def, _ = _prune(definition, reg, quiet=True)
    errors: List[str] = []
    warnings: List[str] = []

    def _name(node_id: str) -> str:
        node = graph_def.get_node(node_id)
        if node is None:
            return node_id
        return f"'{node.label or node.type}' ({node.id})"

    # Start node
    starts = graph_def.get_start_nodes()
    if not starts:
        errors.append("Workflow must have exactly one Start node.")
    elif len(starts) > 1:
        errors.append(f"Workflow must have exactly one Start node (found {len(starts)}).")

    # Kinds & configs
    for node in graph_def.nodes:
        descriptor = reg.describe(node.type)
        if not descriptor.known:
            warnings.append(f"Node {_name(node.id)} has unknown type '{node.type}'.")
            continue
        for issue in reg.validate_config(node.type, node.config):
            warnings.append(f"Node {_name(node.id)}: {issue.message}")
        if descriptor.inputs == 0 and graph_def.get_edges_to(node.id):
            warnings.append(f"Node {_name(node.id)} does not accept incoming connections.")
        if descriptor.is_terminal and node.type not in _SOFT_TERMINALS and graph_def.get_edges_from(node.id):
            warnings.append(f"Node {_name(node.id)} ends the flow; its outgoing connections are ignored.")

    # Edges
    seen: Set[Tuple[str, Optional[str], str, Optional[str]]] = set()
    for edge in graph_def.edges:
        if edge.source == edge.target:
            warnings.append(f"Node {_name(edge.source)} is connected to itself.")
        key = (edge.source, edge.source_handle, edge.target, edge.target_handle)
        if key in seen:
            warnings.append(f"Duplicate connection {_name(edge.source)} → {_name(edge.target)}.")
        seen.add(key)

    # Terminal reachability
    if len(starts) == 1:
        graph = build_nx_graph(graph_def)
        reachable = nx.descendants(graph, starts[0].id) | {starts[0].id}
        if not any(_is_terminal(graph_def, node_id, reg) for node_id in reachable):
            warnings.append("No end, transfer or reply node is reachable from Start.")

    result = ValidationResult(valid=not errors, errors=errors, warnings=warnings)
    logger.debug(f"Validated workflow {definition.id}: {len(errors)} errors, {len(warnings)} warnings")
    return result


def _is_terminal(definition: WorkflowDefinition, node_id: str, registry: NodeRegistry) -> bool:
    node = definition.get_node(node_id)
    if node is None or not registry.describe(node.type).is_terminal:
        return False
    if node.type in _SOFT_TERMINALS:
        return not definition.get_edges_from(node_id)
    return True
