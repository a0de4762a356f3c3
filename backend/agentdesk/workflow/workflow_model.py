"""
Workflow Data Models — definitions, node instances, and edges.

These are the in-memory structures behind the workflow editor. The
console persists a workflow as metadata plus two independently
serialised JSON arrays (``nodesJson`` / ``edgesJson``) in React Flow's
node/edge shape; keys this package does not model (``measured``,
``style``, ``animated`` ...) are preserved on round-trip.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from agentdesk.api.models import WorkflowPayload


class WorkflowSerializationError(Exception):
    """``nodesJson`` / ``edgesJson`` could not be decoded into nodes/edges."""


def new_node_id() -> str:
    return str(uuid.uuid4())[:8]


def new_edge_id(source: str, target: str) -> str:
    return f"e-{source}-{target}-{uuid.uuid4().hex[:6]}"


class _FlowModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Position(_FlowModel):
    x: float = 0.0
    y: float = 0.0


class NodeData(_FlowModel):
    """``node.data``: display label plus the kind-specific config."""

    label: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("label", mode="before")
    @classmethod
    def _label_not_null(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("config", mode="before")
    @classmethod
    def _config_not_null(cls, v: Any) -> Any:
        return {} if v is None else v


class WorkflowNode(_FlowModel):
    """A single node placed on the workflow canvas.

    ``type`` references a registered ``BaseNode.node_type``.
    """

    id: str = Field(default_factory=new_node_id)
    type: str
    position: Position = Field(default_factory=Position)
    data: NodeData = Field(default_factory=NodeData)

    # Layout hints / render state written back by the canvas.
    source_position: Optional[str] = Field(default=None, alias="sourcePosition")
    target_position: Optional[str] = Field(default=None, alias="targetPosition")
    width: Optional[float] = None
    height: Optional[float] = None
    measured: Optional[Dict[str, float]] = None
    selected: Optional[bool] = None

    @property
    def label(self) -> str:
        return self.data.label

    @property
    def config(self) -> Dict[str, Any]:
        return self.data.config

    def effective_size(self, default_width: float, default_height: float) -> Tuple[float, float]:
        """Measured render size if known, else the explicit size, else the default."""
        measured = self.measured or {}
        width = measured.get("width") or self.width or default_width
        height = measured.get("height") or self.height or default_height
        return float(width), float(height)


class WorkflowEdge(_FlowModel):
    """A directed edge between two nodes.

    ``source_handle`` picks the outgoing branch on nodes with named
    handles (intent id, condition id / ``else``, ``executed`` /
    ``not_executed``); it is ``None`` for single-output nodes.
    """

    id: str = ""
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")
    label: Optional[str] = None

    def model_post_init(self, __context: Any) -> None:
        if not self.id:
            self.id = new_edge_id(self.source, self.target)


class WorkflowDefinition(BaseModel):
    """A complete workflow graph definition with its console metadata."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: str = "Untitled Workflow"
    description: str = ""
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)
    category_ids: List[str] = Field(default_factory=list, alias="categoryIds")

    # Untouched payload metadata (version, enabled, trigger...) for the PUT.
    extra_fields: Dict[str, Any] = Field(default_factory=dict, exclude=True)

    @field_validator("category_ids", mode="after")
    @classmethod
    def _dedupe_categories(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))

    # ── Lookup ──

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        """Find a node by ID."""
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def get_edge(self, edge_id: str) -> Optional[WorkflowEdge]:
        for e in self.edges:
            if e.id == edge_id:
                return e
        return None

    def get_edges_from(self, node_id: str) -> List[WorkflowEdge]:
        """Get all edges originating from a node."""
        return [e for e in self.edges if e.source == node_id]

    def get_edges_to(self, node_id: str) -> List[WorkflowEdge]:
        """Get all edges pointing to a node."""
        return [e for e in self.edges if e.target == node_id]

    def get_start_nodes(self) -> List[WorkflowNode]:
        return [n for n in self.nodes if n.type == "start"]

    def get_start_node(self) -> Optional[WorkflowNode]:
        """First node of type 'start', if any."""
        starts = self.get_start_nodes()
        return starts[0] if starts else None

    # ── Serialization ──

    def nodes_json(self) -> str:
        return serialize_nodes(self.nodes)

    def edges_json(self) -> str:
        return serialize_edges(self.edges)

    def to_payload(self) -> WorkflowPayload:
        payload = WorkflowPayload(
            id=self.id,
            name=self.name,
            description=self.description,
            nodes_json=self.nodes_json(),
            edges_json=self.edges_json(),
            category_ids=list(self.category_ids),
            **self.extra_fields,
        )
        return payload

    @classmethod
    def from_payload(cls, payload: WorkflowPayload) -> "WorkflowDefinition":
        """Decode a console payload.

        Raises:
            WorkflowSerializationError: ``nodesJson`` / ``edgesJson`` is corrupt
        """
        known = {"id", "name", "description", "nodes_json", "edges_json", "category_ids"}
        extra = {
            k: v for k, v in payload.model_dump(exclude_none=True).items() if k not in known
        }
        return cls(
            id=payload.id,
            name=payload.name or "",
            description=payload.description or "",
            nodes=deserialize_nodes(payload.nodes_json),
            edges=deserialize_edges(payload.edges_json),
            category_ids=list(payload.category_ids or []),
            extra_fields=extra,
        )

    def copy_graph(self) -> "WorkflowDefinition":
        return self.model_copy(deep=True)


# ============================================================================
# JSON array codecs
# ============================================================================


def serialize_nodes(nodes: Iterable[WorkflowNode]) -> str:
    return json.dumps([n.to_wire() for n in nodes], ensure_ascii=False)


def serialize_edges(edges: Iterable[WorkflowEdge]) -> str:
    return json.dumps([e.to_wire() for e in edges], ensure_ascii=False)


def deserialize_nodes(text: Optional[str]) -> List[WorkflowNode]:
    return [_decode_item(WorkflowNode, item, "nodesJson", i) for i, item in enumerate(_decode_array(text, "nodesJson"))]


def deserialize_edges(text: Optional[str]) -> List[WorkflowEdge]:
    return [_decode_item(WorkflowEdge, item, "edgesJson", i) for i, item in enumerate(_decode_array(text, "edgesJson"))]


def _decode_array(text: Optional[str], what: str) -> List[Any]:
    if text is None or not text.strip():
        return []
    try:
        items = json.loads(text)
    except json.JSONDecodeError as e:
        raise WorkflowSerializationError(f"{what} is not valid JSON: {e}") from e
    if items is None:
        return []
    if not isinstance(items, list):
        raise WorkflowSerializationError(f"{what} must be a JSON array, got {type(items).__name__}")
    return items


def _decode_item(model: Any, item: Any, what: str, index: int) -> Any:
    if not isinstance(item, dict):
        raise WorkflowSerializationError(f"{what}[{index}] is not an object")
    try:
        return model.model_validate(item)
    except ValidationError as e:
        raise WorkflowSerializationError(f"{what}[{index}] is malformed: {e}") from e
