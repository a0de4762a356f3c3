"""
Node base types and the Node Type Registry.

Every node kind that can be placed on the workflow canvas is a
``BaseNode`` subclass registered with ``@register_node``. The class
attributes describe the kind (label, category, config parameters,
output ports); the registry turns them into ``NodeDescriptor``s and
is the single dispatch table for default configs, advisory config
checks, handle topology and the config update hook.

Adding a kind means adding a subclass, never a new ``if kind == ...``
branch in the editor, validator or variable engine.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from logging import getLogger
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Tuple,
    Type,
)

if TYPE_CHECKING:
    from agentdesk.workflow.editor_cache import EditorCache

logger = getLogger(__name__)


# ============================================================================
# Parameter / port metadata
# ============================================================================


@dataclass
class NodeParameter:
    """One configurable field of a node kind.

    ``type`` drives both the property panel widget and the advisory
    checks: ``prompt_template`` fields accept ``{{scope.field}}``
    variable references, ``number``/``integer`` honour ``min``/``max``,
    ``select`` values must be one of ``options`` and ``list`` values must
    be lists.
    """

    name: str
    label: str
    type: str = "string"
    default: Any = None
    required: bool = False
    description: str = ""
    placeholder: str = ""
    min: Optional[float] = None
    max: Optional[float] = None
    options: Optional[List[Dict[str, Any]]] = None
    group: str = "general"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "label": self.label,
            "type": self.type,
            "default": self.default,
            "required": self.required,
            "description": self.description,
            "group": self.group,
        }
        if self.placeholder:
            data["placeholder"] = self.placeholder
        if self.min is not None:
            data["min"] = self.min
        if self.max is not None:
            data["max"] = self.max
        if self.options is not None:
            data["options"] = self.options
        return data


@dataclass
class OutputPort:
    """A named outgoing connector (React Flow source handle)."""

    id: str
    label: str = ""
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label, "description": self.description}


@dataclass(frozen=True)
class OutputVariable:
    """Variable a node kind contributes to other nodes' catalogs.

    ``display_fallback`` / ``value_fallback`` stand in for an empty
    node label in the menu entry and the inserted template.
    """

    field: str
    group: str
    display_fallback: str
    value_fallback: str
    type: str = "String"


# ============================================================================
# Descriptors
# ============================================================================


class HandleMode(str, Enum):
    """How a node kind's outgoing handles are determined."""

    NONE = "none"          # terminal: no outgoing connector
    FIXED = "fixed"        # constant handle list
    DYNAMIC = "dynamic"    # computed from the node's config


@dataclass(frozen=True)
class HandleTopology:
    """Outgoing connector layout of a node kind.

    ``named`` is set for kinds whose edges must carry a ``sourceHandle``
    naming one of the live handles (intent, condition, tool); edges of
    unnamed kinds are never pruned for their handle.
    """

    mode: HandleMode
    fixed: Tuple[str, ...] = ()
    resolver: Optional[Callable[[Dict[str, Any]], List[str]]] = None
    named: bool = False

    def handles(self, config: Optional[Dict[str, Any]] = None) -> List[str]:
        if self.mode == HandleMode.NONE:
            return []
        if self.mode == HandleMode.DYNAMIC and self.resolver is not None:
            return self.resolver(config or {})
        return list(self.fixed)

    def count(self, config: Optional[Dict[str, Any]] = None) -> int:
        return len(self.handles(config))


@dataclass(frozen=True)
class NodeDescriptor:
    """Registry answer for ``describe(kind)``."""

    node_type: str
    label: str
    category: str
    inputs: int
    outputs: HandleTopology
    known: bool = True

    @property
    def is_terminal(self) -> bool:
        return self.outputs.mode == HandleMode.NONE

    @property
    def has_named_handles(self) -> bool:
        return self.outputs.named


@dataclass
class ConfigIssue:
    """Advisory problem with a node's config (never blocks editing)."""

    field: str
    message: str
    severity: str = "warning"

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "message": self.message, "severity": self.severity}


# ============================================================================
# BaseNode
# ============================================================================


class BaseNode:
    """Base class for all node kinds.

    Subclasses set the class attributes and override the hooks they
    need:

    - ``get_dynamic_output_ports(config)`` for config-driven handles
      (set ``dynamic_outputs = True``)
    - ``validate_config(config)`` to add kind-specific checks
    - ``on_config_patch(config, patch, cache)`` to stamp derived
      fields when a referenced entity is selected
    """

    node_type: str = ""
    label: str = ""
    description: str = ""
    category: str = "general"
    icon: str = ""
    color: str = "#64748b"

    inputs: int = 1
    parameters: List[NodeParameter] = []
    output_ports: List[OutputPort] = [OutputPort(id="default", label="Next")]
    dynamic_outputs: bool = False
    named_outputs: bool = False
    output_variable: Optional[OutputVariable] = None

    # ── Handles ──

    def get_dynamic_output_ports(self, config: Dict[str, Any]) -> List[OutputPort]:
        """Output ports for a concrete config. Static kinds return ``output_ports``."""
        return list(self.output_ports)

    def get_handle_topology(self) -> HandleTopology:
        if self.dynamic_outputs:
            return HandleTopology(
                mode=HandleMode.DYNAMIC,
                resolver=lambda cfg: [p.id for p in self.get_dynamic_output_ports(cfg)],
                named=self.named_outputs,
            )
        if not self.output_ports:
            return HandleTopology(mode=HandleMode.NONE)
        return HandleTopology(
            mode=HandleMode.FIXED,
            fixed=tuple(p.id for p in self.output_ports),
            named=self.named_outputs,
        )

    def describe(self) -> NodeDescriptor:
        return NodeDescriptor(
            node_type=self.node_type,
            label=self.label,
            category=self.category,
            inputs=self.inputs,
            outputs=self.get_handle_topology(),
        )

    # ── Config ──

    def default_config(self) -> Dict[str, Any]:
        return {
            p.name: copy.deepcopy(p.default)
            for p in self.parameters
            if p.default is not None
        }

    def validate_config(self, config: Dict[str, Any]) -> List[ConfigIssue]:
        """Check required fields, value shapes and numeric bounds."""
        issues: List[ConfigIssue] = []
        for param in self.parameters:
            value = config.get(param.name)
            if param.required and _is_blank(value):
                issues.append(ConfigIssue(param.name, f"{param.label} is required"))
                continue
            if param.type == "list" and value is not None and not isinstance(value, list):
                issues.append(ConfigIssue(param.name, f"{param.label} must be a list"))
                continue
            if param.type == "select" and param.options and value is not None:
                allowed = [o.get("value") for o in param.options]
                if value not in allowed:
                    issues.append(ConfigIssue(param.name, f"{param.label} must be one of {', '.join(map(str, allowed))}"))
                continue
            if value is None or param.type not in ("number", "integer"):
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                issues.append(ConfigIssue(param.name, f"{param.label} must be a number"))
                continue
            if param.type == "integer" and not float(value).is_integer():
                issues.append(ConfigIssue(param.name, f"{param.label} must be a whole number"))
            if param.min is not None and value < param.min:
                issues.append(ConfigIssue(param.name, f"{param.label} must be ≥ {param.min:g}"))
            if param.max is not None and value > param.max:
                issues.append(ConfigIssue(param.name, f"{param.label} must be ≤ {param.max:g}"))
        return issues

    def on_config_patch(
        self,
        config: Dict[str, Any],
        patch: Dict[str, Any],
        cache: Optional["EditorCache"],
    ) -> Dict[str, Any]:
        """Return extra keys to merge alongside ``patch``."""
        return {}

    # ── Serialization ──

    def to_dict(self) -> Dict[str, Any]:
        """Palette entry for the editor UI."""
        topology = self.get_handle_topology()
        return {
            "node_type": self.node_type,
            "label": self.label,
            "description": self.description,
            "category": self.category,
            "icon": self.icon,
            "color": self.color,
            "inputs": self.inputs,
            "outputs": topology.mode.value,
            "parameters": [p.to_dict() for p in self.parameters],
            "output_ports": [p.to_dict() for p in self.output_ports],
            "dynamic_outputs": self.dynamic_outputs,
        }


def config_list(config: Optional[Dict[str, Any]], key: str) -> List[Any]:
    """``config[key]`` if it is a list, else an empty list."""
    if not isinstance(config, dict):
        return []
    value = config.get(key)
    return list(value) if isinstance(value, list) else []


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict, tuple)):
        return len(value) == 0
    return False


# ============================================================================
# Registry
# ============================================================================


_UNKNOWN_TOPOLOGY = HandleTopology(mode=HandleMode.FIXED, fixed=("default",))


class NodeRegistry:
    """Catalog of node kinds, keyed by ``node_type``."""

    def __init__(self) -> None:
        self._nodes: Dict[str, BaseNode] = {}

    def register(self, node_cls: Type[BaseNode]) -> BaseNode:
        instance = node_cls()
        if not instance.node_type:
            raise ValueError(f"{node_cls.__name__} does not declare a node_type")
        if instance.node_type in self._nodes:
            logger.warning(f"Node type '{instance.node_type}' re-registered by {node_cls.__name__}")
        self._nodes[instance.node_type] = instance
        logger.debug(f"Registered node type: {instance.node_type}")
        return instance

    def get(self, node_type: str) -> Optional[BaseNode]:
        return self._nodes.get(node_type)

    def has(self, node_type: str) -> bool:
        return node_type in self._nodes

    def describe(self, node_type: str) -> NodeDescriptor:
        """Descriptor for ``node_type``; unknown kinds get a permissive 1-in/1-out one."""
        node = self._nodes.get(node_type)
        if node is None:
            return NodeDescriptor(
                node_type=node_type,
                label=node_type,
                category="unknown",
                inputs=1,
                outputs=_UNKNOWN_TOPOLOGY,
                known=False,
            )
        return node.describe()

    def handles_for(self, node_type: str, config: Optional[Dict[str, Any]] = None) -> List[str]:
        return self.describe(node_type).outputs.handles(config or {})

    def default_config(self, node_type: str) -> Dict[str, Any]:
        node = self._nodes.get(node_type)
        return node.default_config() if node else {}

    def validate_config(self, node_type: str, config: Optional[Dict[str, Any]]) -> List[ConfigIssue]:
        node = self._nodes.get(node_type)
        if node is None:
            return []
        return node.validate_config(config or {})

    def apply_config_patch(
        self,
        node_type: str,
        config: Optional[Dict[str, Any]],
        patch: Dict[str, Any],
        cache: Optional["EditorCache"] = None,
    ) -> Dict[str, Any]:
        """Shallow-merge ``patch`` into ``config`` and run the kind's update hook.

        Returns a new dict; ``config`` is not modified.
        """
        base = dict(config or {})
        node = self._nodes.get(node_type)
        extra = node.on_config_patch(base, patch, cache) if node else {}
        base.update(patch)
        base.update(extra)
        return base

    def output_variable(self, node_type: str) -> Optional[OutputVariable]:
        node = self._nodes.get(node_type)
        return node.output_variable if node else None

    def list_all(self) -> List[BaseNode]:
        return list(self._nodes.values())

    def list_by_category(self) -> Dict[str, List[BaseNode]]:
        grouped: Dict[str, List[BaseNode]] = {}
        for node in self._nodes.values():
            grouped.setdefault(node.category, []).append(node)
        return grouped

    def to_catalog(self) -> List[Dict[str, Any]]:
        return [node.to_dict() for node in self._nodes.values()]


_registry: Optional[NodeRegistry] = None


def get_node_registry() -> NodeRegistry:
    """Return the process-wide registry populated by ``@register_node``."""
    global _registry
    if _registry is None:
        _registry = NodeRegistry()
    return _registry


def register_node(cls: Type[BaseNode]) -> Type[BaseNode]:
    """Class decorator: register a node kind in the global registry."""
    get_node_registry().register(cls)
    return cls
