"""
Workflow Editor — the editing session over one workflow graph.

``WorkflowEditor`` owns the in-memory ``WorkflowDefinition`` plus the
collaborators an editing session needs: the node registry, an
``EditorCache`` of models/tools, and the editor config. All graph
mutations are synchronous and never refuse an intermediate state
(self-loops, duplicate edges and half-configured nodes are allowed;
only the validator comments on them).

Network operations (save, remote validation, EL preview, model/tool
refresh, generation) are async, catch ``ConsoleAPIError`` and report
through ``OperationResult``; a failed call never rolls the graph back.
The graph may keep changing while a save is in flight; whatever the
user edits last is what the next save sends.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

import networkx as nx

from agentdesk.api.exceptions import ConsoleAPIError
from agentdesk.api.models import WorkflowPayload
from agentdesk.config import WorkflowEditorConfig, get_config
from agentdesk.workflow.editor_cache import EditorCache
from agentdesk.workflow.nodes import NodeRegistry, config_list, register_all_nodes
from agentdesk.workflow.workflow_layout import LayoutOptions, LayoutResult, compute_layout
from agentdesk.workflow.workflow_model import (
    NodeData,
    Position,
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
    new_edge_id,
    new_node_id,
)
from agentdesk.workflow.workflow_validator import (
    SavePreparation,
    ValidationResult,
    build_nx_graph,
    prepare_for_save,
    validate_graph,
)
from agentdesk.workflow.workflow_variables import (
    InsertionResult,
    SuggestionSession,
    VariableRef,
    build_catalog,
    group_catalog,
    insert_variable,
    read_field,
    write_field,
)

if TYPE_CHECKING:
    from agentdesk.api.client import ConsoleClient
    from agentdesk.workflow.workflow_store import WorkflowStore

logger = getLogger(__name__)


def _item_id(item: Any) -> Any:
    return item.get("id") if isinstance(item, dict) else None


def _as_dict(item: Any) -> Dict[str, Any]:
    return item if isinstance(item, dict) else {}


@dataclass
class OperationResult:
    """Outcome of an editor-level network operation."""

    ok: bool
    error: Optional[str] = None
    data: Any = None


class WorkflowEditor:
    """Mutable editing session over a single workflow."""

    def __init__(
        self,
        definition: Optional[WorkflowDefinition] = None,
        registry: Optional[NodeRegistry] = None,
        cache: Optional[EditorCache] = None,
        config: Optional[WorkflowEditorConfig] = None,
    ) -> None:
        self.definition = definition or WorkflowDefinition()
        self.registry = registry or register_all_nodes()
        self.cache = cache or EditorCache()
        self.config: WorkflowEditorConfig = config or get_config("workflow_editor")
        self.suggestions = SuggestionSession()
        self.selected_node_id: Optional[str] = None
        self.revision = 0
        self._catalogs: Dict[str, List[VariableRef]] = {}
        self._last_branch_stamp = 0

    @classmethod
    def from_definition(
        cls,
        definition: WorkflowDefinition,
        registry: Optional[NodeRegistry] = None,
        cache: Optional[EditorCache] = None,
        config: Optional[WorkflowEditorConfig] = None,
    ) -> "WorkflowEditor":
        return cls(definition.copy_graph(), registry=registry, cache=cache, config=config)

    @classmethod
    async def load(
        cls,
        store: "WorkflowStore",
        workflow_id: str,
        registry: Optional[NodeRegistry] = None,
        cache: Optional[EditorCache] = None,
        config: Optional[WorkflowEditorConfig] = None,
    ) -> "WorkflowEditor":
        """Open a saved workflow.

        Raises:
            ConsoleAPIError: the workflow could not be fetched
            WorkflowSerializationError: its stored graph is corrupt
        """
        definition = await store.load(workflow_id)
        return cls(definition, registry=registry, cache=cache, config=config)

    # ── Accessors ──

    @property
    def nodes(self) -> List[WorkflowNode]:
        return self.definition.nodes

    @property
    def edges(self) -> List[WorkflowEdge]:
        return self.definition.edges

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        return self.definition.get_node(node_id)

    @property
    def selected_node(self) -> Optional[WorkflowNode]:
        if self.selected_node_id is None:
            return None
        return self.get_node(self.selected_node_id)

    # ========================================================================
    # Nodes
    # ========================================================================

    def add_node(
        self,
        kind: str,
        position: Optional[Dict[str, float]] = None,
        initial_config: Optional[Dict[str, Any]] = None,
        label: Optional[str] = None,
    ) -> str:
        """Place a new node; config defaults come from the registry."""
        node_id = self._unique_node_id()
        config = self.registry.default_config(kind)
        if initial_config:
            config.update(initial_config)
        base = self.registry.get(kind)
        if base is None:
            logger.warning(f"Adding node of unknown type '{kind}'")
        pos = position or {}
        node = WorkflowNode(
            id=node_id,
            type=kind,
            position=Position(x=pos.get("x", 0.0), y=pos.get("y", 0.0)),
            data=NodeData(label=label if label is not None else (base.label if base else kind), config=config),
        )
        self.definition.nodes.append(node)
        self._structure_changed()
        logger.debug(f"Node added: {kind} ({node_id})")
        return node_id

    def clone_node(self, node_id: str) -> Optional[str]:
        """Duplicate a node (not its edges), offset and unselected."""
        source = self.get_node(node_id)
        if source is None:
            return None
        clone = source.model_copy(deep=True)
        clone.id = self._unique_node_id()
        clone.position = Position(
            x=source.position.x + self.config.clone_offset_x,
            y=source.position.y + self.config.clone_offset_y,
        )
        clone.selected = False
        self.definition.nodes.append(clone)
        self._structure_changed()
        logger.debug(f"Node cloned: {node_id} → {clone.id}")
        return clone.id

    def remove_node(self, node_id: str) -> bool:
        """Delete a node and every edge touching it."""
        before = len(self.definition.nodes)
        self.definition.nodes = [n for n in self.definition.nodes if n.id != node_id]
        if len(self.definition.nodes) == before:
            return False
        self.definition.edges = [
            e for e in self.definition.edges if e.source != node_id and e.target != node_id
        ]
        if self.selected_node_id == node_id:
            self.selected_node_id = None
        self._structure_changed()
        logger.debug(f"Node removed: {node_id}")
        return True

    def move_node(self, node_id: str, x: float, y: float) -> bool:
        node = self.get_node(node_id)
        if node is None:
            return False
        node.position = Position(x=x, y=y)
        self.revision += 1
        return True

    def select_node(self, node_id: Optional[str]) -> bool:
        if node_id is not None and self.get_node(node_id) is None:
            return False
        for node in self.definition.nodes:
            if node.id == node_id:
                node.selected = True
            elif node.selected:
                node.selected = False
        self.selected_node_id = node_id
        self.suggestions.close()
        return True

    def update_node_label(self, node_id: str, label: str) -> bool:
        node = self.get_node(node_id)
        if node is None:
            return False
        node.data.label = label
        # Labels name other nodes' variables.
        self._structure_changed()
        return True

    def update_node_config(self, node_id: str, patch: Dict[str, Any]) -> bool:
        """Shallow-merge ``patch`` into the node's config via the registry hook."""
        node = self.get_node(node_id)
        if node is None:
            return False
        node.data.config = self.registry.apply_config_patch(
            node.type, node.data.config, patch, self.cache,
        )
        self.revision += 1
        self._invalidate_from(node_id)
        return True

    # ========================================================================
    # Edges
    # ========================================================================

    def connect(
        self,
        source: str,
        target: str,
        source_handle: Optional[str] = None,
        target_handle: Optional[str] = None,
    ) -> str:
        """Add an edge. Nothing is checked here, not even that the nodes exist."""
        edge = WorkflowEdge(
            id=new_edge_id(source, target),
            source=source,
            target=target,
            source_handle=source_handle,
            target_handle=target_handle,
        )
        self.definition.edges.append(edge)
        self._structure_changed()
        return edge.id

    def remove_edge(self, edge_id: str) -> bool:
        before = len(self.definition.edges)
        self.definition.edges = [e for e in self.definition.edges if e.id != edge_id]
        if len(self.definition.edges) == before:
            return False
        self._structure_changed()
        return True

    # ========================================================================
    # Property helpers
    # ========================================================================

    def _list(self, node_id: str, key: str) -> Optional[List[Any]]:
        node = self.get_node(node_id)
        if node is None:
            return None
        return config_list(node.config, key)

    def _branch_id(self, prefix: str) -> str:
        # Millisecond stamp, bumped so ids stay unique within a session.
        stamp = max(int(time.time() * 1000), self._last_branch_stamp + 1)
        self._last_branch_stamp = stamp
        return f"{prefix}{stamp}"

    # ── Intents ──

    def add_intent(self, node_id: str, label: str = "New Intent") -> Optional[str]:
        intents = self._list(node_id, "intents")
        if intents is None:
            return None
        intent_id = self._branch_id("i")
        intents.append({"id": intent_id, "label": label})
        self.update_node_config(node_id, {"intents": intents})
        return intent_id

    def rename_intent(self, node_id: str, intent_id: str, label: str) -> bool:
        intents = self._list(node_id, "intents")
        if intents is None or not any(_item_id(i) == intent_id for i in intents):
            return False
        intents = [{**i, "label": label} if _item_id(i) == intent_id else i for i in intents]
        return self.update_node_config(node_id, {"intents": intents})

    def delete_intent(self, node_id: str, intent_id: str) -> bool:
        """Remove an intent. Edges on its branch stay until the next prune."""
        intents = self._list(node_id, "intents")
        if intents is None:
            return False
        remaining = [i for i in intents if _item_id(i) != intent_id]
        if len(remaining) == len(intents):
            return False
        return self.update_node_config(node_id, {"intents": remaining})

    # ── Conditions ──

    def add_condition(
        self,
        node_id: str,
        source_value: str = "",
        condition_type: str = "equals",
        input_value: str = "",
    ) -> Optional[str]:
        conditions = self._list(node_id, "conditions")
        if conditions is None:
            return None
        condition_id = self._branch_id("c")
        conditions.append({
            "id": condition_id,
            "sourceValue": source_value,
            "conditionType": condition_type,
            "inputValue": input_value,
        })
        self.update_node_config(node_id, {"conditions": conditions})
        return condition_id

    def update_condition(self, node_id: str, condition_id: str, **changes: Any) -> bool:
        conditions = self._list(node_id, "conditions")
        if conditions is None or not any(_item_id(c) == condition_id for c in conditions):
            return False
        changes.pop("id", None)
        conditions = [{**c, **changes} if _item_id(c) == condition_id else c for c in conditions]
        return self.update_node_config(node_id, {"conditions": conditions})

    def delete_condition(self, node_id: str, condition_id: str) -> bool:
        conditions = self._list(node_id, "conditions")
        if conditions is None:
            return False
        remaining = [c for c in conditions if _item_id(c) != condition_id]
        if len(remaining) == len(conditions):
            return False
        return self.update_node_config(node_id, {"conditions": remaining})

    # ── Tools ──

    def add_tools(self, node_id: str, tool_ids: Iterable[str]) -> bool:
        tools = self._list(node_id, "tools")
        if tools is None:
            return False
        for tool_id in tool_ids:
            if tool_id not in tools:
                tools.append(tool_id)
        return self.update_node_config(node_id, {"tools": tools})

    def remove_tool(self, node_id: str, tool_id: str) -> bool:
        tools = self._list(node_id, "tools")
        if tools is None or tool_id not in tools:
            return False
        return self.update_node_config(node_id, {"tools": [t for t in tools if t != tool_id]})

    # ── Few-shot messages ──

    def add_message(self, node_id: str) -> Optional[int]:
        """Append an empty message whose role alternates with the previous one."""
        messages = self._list(node_id, "messages")
        if messages is None:
            return None
        last_role = messages[-1].get("role") if messages and isinstance(messages[-1], dict) else "assistant"
        messages.append({"role": "assistant" if last_role == "user" else "user", "content": ""})
        self.update_node_config(node_id, {"messages": messages})
        return len(messages) - 1

    def update_message(self, node_id: str, index: int, field: str, value: str) -> bool:
        messages = self._list(node_id, "messages")
        if messages is None or not 0 <= index < len(messages):
            return False
        messages[index] = {**_as_dict(messages[index]), field: value}
        return self.update_node_config(node_id, {"messages": messages})

    def delete_message(self, node_id: str, index: int) -> bool:
        messages = self._list(node_id, "messages")
        if messages is None or not 0 <= index < len(messages):
            return False
        del messages[index]
        return self.update_node_config(node_id, {"messages": messages})

    # ── Extraction parameters ──

    def add_parameter(self, node_id: str) -> Optional[int]:
        params = self._list(node_id, "parameters")
        if params is None:
            return None
        params.append({"name": "", "description": "", "required": True, "type": "string"})
        self.update_node_config(node_id, {"parameters": params})
        return len(params) - 1

    def update_parameter(self, node_id: str, index: int, **changes: Any) -> bool:
        params = self._list(node_id, "parameters")
        if params is None or not 0 <= index < len(params):
            return False
        params[index] = {**_as_dict(params[index]), **changes}
        return self.update_node_config(node_id, {"parameters": params})

    def delete_parameter(self, node_id: str, index: int) -> bool:
        params = self._list(node_id, "parameters")
        if params is None or not 0 <= index < len(params):
            return False
        del params[index]
        return self.update_node_config(node_id, {"parameters": params})

    # ── Workflow settings ──

    def update_settings(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        category_ids: Optional[Iterable[str]] = None,
    ) -> None:
        if name is not None:
            self.definition.name = name
        if description is not None:
            self.definition.description = description
        if category_ids is not None:
            self.definition.category_ids = list(dict.fromkeys(category_ids))
        self.revision += 1

    # ========================================================================
    # Variables
    # ========================================================================

    def catalog_for(self, node_id: str) -> List[VariableRef]:
        """Variables insertable into ``node_id``'s text fields (memoised)."""
        if node_id not in self._catalogs:
            self._catalogs[node_id] = build_catalog(self.definition, node_id, self.registry)
        return list(self._catalogs[node_id])

    def grouped_catalog_for(self, node_id: str) -> Dict[str, List[VariableRef]]:
        return group_catalog(self.catalog_for(node_id))

    def on_text_input(self, node_id: str, field: str, text: str, cursor: int) -> List[VariableRef]:
        """Store an edit of a text field and return the open menu's suggestions."""
        self._write_text(node_id, field, text)
        self.suggestions.on_input(f"{node_id}:{field}", text, cursor)
        return self.suggestions.suggestions(self.catalog_for(node_id))

    def accept_suggestion(
        self, node_id: str, field: str, cursor: int, variable: VariableRef,
    ) -> Optional[InsertionResult]:
        """Insert ``variable`` at the open menu's trigger in ``field``."""
        node = self.get_node(node_id)
        if node is None or self.suggestions.field != f"{node_id}:{field}":
            return None
        text = read_field(node.config, field) or ""
        result = self.suggestions.accept(text, cursor, variable)
        self._write_text(node_id, field, result.value)
        return result

    def insert_variable(
        self,
        node_id: str,
        field: str,
        trigger_offset: int,
        cursor_offset: int,
        template: str,
    ) -> Optional[InsertionResult]:
        """Stateless insertion into a node's text field."""
        node = self.get_node(node_id)
        if node is None:
            return None
        text = read_field(node.config, field) or ""
        result = insert_variable(text, trigger_offset, cursor_offset, template)
        if not self._write_text(node_id, field, result.value):
            return None
        return result

    def _write_text(self, node_id: str, field: str, value: str) -> bool:
        node = self.get_node(node_id)
        if node is None:
            return False
        try:
            new_config, top = write_field(node.config, field, value)
        except KeyError:
            logger.warning(f"Field '{field}' does not exist on node {node_id}")
            return False
        return self.update_node_config(node_id, {top: new_config[top]})

    # ========================================================================
    # Validation, layout, save
    # ========================================================================

    def validate(self) -> ValidationResult:
        return validate_graph(self.definition, self.registry)

    def apply_layout(self, direction: Optional[str] = None) -> LayoutResult:
        """Re-arrange every node. Only ever called on explicit request."""
        options = LayoutOptions(
            direction=direction or self.config.layout_direction,
            node_width=self.config.default_node_width,
            node_height=self.config.default_node_height,
            node_spacing=self.config.node_spacing,
            rank_spacing=self.config.rank_spacing,
        )
        result = compute_layout(self.definition, options)
        for node in self.definition.nodes:
            if node.id in result.positions:
                x, y = result.positions[node.id]
                node.position = Position(x=x, y=y)
            node.source_position = result.source_position
            node.target_position = result.target_position
        self.revision += 1
        logger.info(f"Auto-layout applied ({options.direction}) to {len(result.positions)} nodes")
        return result

    def prepare_for_save(self) -> SavePreparation:
        return prepare_for_save(
            self.definition,
            cache=self.cache,
            registry=self.registry,
            min_temperature=self.config.gpt5_min_temperature,
        )

    def to_payload(self) -> WorkflowPayload:
        return self.prepare_for_save().definition.to_payload()

    async def save(self, store: "WorkflowStore") -> OperationResult:
        """Save the current graph.

        On success the local graph takes the healed edges and temperatures,
        unless it was edited again while the request was in flight.
        """
        revision = self.revision
        try:
            report = await store.save(self.definition, cache=self.cache)
        except (ConsoleAPIError, ValueError) as e:
            logger.error(f"Failed to save workflow {self.definition.id}: {e}")
            return OperationResult(ok=False, error=str(e))

        if report.changed and self.revision == revision:
            self.definition.edges = report.definition.edges
            saved = {n.id: n for n in report.definition.nodes}
            for node in self.definition.nodes:
                if node.id in report.normalized_node_ids and node.id in saved:
                    node.data.config = dict(saved[node.id].config)
            self._structure_changed()
        return OperationResult(ok=True, data=report)

    async def validate_remote(self, store: "WorkflowStore") -> OperationResult:
        """Server-side validation; skipped while the local check fails."""
        local = self.validate()
        if not local.valid:
            return OperationResult(ok=False, error="; ".join(local.errors), data=local)
        try:
            response = await store.validate(self.definition, cache=self.cache)
        except ConsoleAPIError as e:
            logger.error(f"Remote validation failed: {e}")
            return OperationResult(ok=False, error=str(e))
        if not response.valid:
            return OperationResult(ok=False, error="; ".join(response.errors), data=response)
        return OperationResult(ok=True, data=response)

    async def preview_el(self, store: "WorkflowStore") -> OperationResult:
        """Compile the graph to its EL expression on the server."""
        local = self.validate()
        if not local.valid:
            return OperationResult(ok=False, error="; ".join(local.errors), data=local)
        try:
            preview = await store.preview_el(self.definition, cache=self.cache)
        except ConsoleAPIError as e:
            logger.error(f"EL preview failed: {e}")
            return OperationResult(ok=False, error=str(e))
        if not preview.success:
            return OperationResult(ok=False, error=preview.error or "EL preview failed", data=preview)
        return OperationResult(ok=True, data=preview)

    # ========================================================================
    # Model / tool lists & generator
    # ========================================================================

    async def refresh_models(self, client: "ConsoleClient") -> OperationResult:
        try:
            models = await client.workflows.list_enabled_models()
        except ConsoleAPIError as e:
            logger.error(f"Failed to fetch models: {e}")
            return OperationResult(ok=False, error=str(e))
        self.cache.set_models(models)
        return OperationResult(ok=True, data=self.cache.models)

    async def refresh_tools(self, client: "ConsoleClient", keyword: Optional[str] = None) -> OperationResult:
        try:
            tools = await client.workflows.list_tools(keyword)
        except ConsoleAPIError as e:
            logger.error(f"Failed to fetch tools: {e}")
            return OperationResult(ok=False, error=str(e))
        self.cache.set_tools(tools)
        return OperationResult(ok=True, data=self.cache.tools)

    async def generate(
        self,
        client: "ConsoleClient",
        prompt: str,
        model_id: str,
        include_existing: bool = True,
    ) -> OperationResult:
        """Replace the graph with an LLM-generated one."""
        from agentdesk.workflow.workflow_generator import generate_into

        return await generate_into(self, client, prompt, model_id, include_existing)

    def replace_graph(self, nodes: List[WorkflowNode], edges: List[WorkflowEdge]) -> None:
        self.definition.nodes = nodes
        self.definition.edges = edges
        self.selected_node_id = None
        self._structure_changed()

    # ========================================================================
    # Internals
    # ========================================================================

    def _unique_node_id(self) -> str:
        existing = set(self.definition.node_ids())
        node_id = new_node_id()
        while node_id in existing:
            node_id = new_node_id()
        return node_id

    def _structure_changed(self) -> None:
        self.revision += 1
        self._catalogs.clear()
        # A menu open on a node that just went away has nothing to insert into.
        if self.suggestions.field:
            owner = self.suggestions.field.split(":", 1)[0]
            if self.get_node(owner) is None:
                self.suggestions.close()

    def _invalidate_from(self, node_id: str) -> None:
        """Drop memoised catalogs of ``node_id`` and everything downstream of it."""
        graph = build_nx_graph(self.definition)
        stale = {node_id}
        if node_id in graph:
            stale |= nx.descendants(graph, node_id)
        for nid in stale:
            self._catalogs.pop(nid, None)
