"""
Workflow Variables — the ``{{scope.field}}`` catalog and slash-insertion.

Free-text config fields (system prompts, reply text, condition
operands, assignment values) may embed variable references. While
editing, typing ``/`` (or the full-width ``／``) opens a menu of the
variables available to the node; accepting one replaces the trigger
and any filter text typed after it with the variable's template.

Everything here is pure: catalogs are computed from the current graph
on demand and text insertion is a string transform, so none of it
needs a running editor UI.

Any node may reference the outputs of every *other* node in the
workflow, not only its ancestors.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from logging import getLogger
from typing import Any, Dict, List, Optional, Tuple

from agentdesk.workflow.nodes.base import NodeRegistry, get_node_registry
from agentdesk.workflow.workflow_model import WorkflowDefinition

logger = getLogger(__name__)

TRIGGER_CHARS = ("/", "／")

# Menu order of the variable groups.
GROUP_ORDER = ["NODE", "START", "CONVERSATION", "USER", "AGENT", "KNOWLEDGE", "LLM", "INTENT"]

_TEMPLATE_RE = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")


@dataclass(frozen=True)
class VariableRef:
    """One entry of a variable catalog.

    ``label`` is what the menu shows, ``value`` the template inserted
    into the text. ``node_id`` is set for variables contributed by a
    node of the graph.
    """

    id: str
    label: str
    value: str
    group: str
    type: str = "String"
    node_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "label": self.label,
            "value": self.value,
            "group": self.group,
            "type": self.type,
        }
        if self.node_id:
            data["nodeId"] = self.node_id
        return data


GLOBAL_VARIABLES: List[VariableRef] = [
    VariableRef("node.input", "input", "{{sys.lastoutput}}", "NODE"),
    VariableRef("sys.query", "query", "{{sys.query}}", "START"),
    VariableRef("sys.files", "files", "{{sys.files}}", "START", type="Array[File]"),
    VariableRef("conversation.history", "history", "{{conversation.history}}", "CONVERSATION", type="Array"),
    VariableRef("user.id", "id", "{{user.id}}", "USER"),
    VariableRef("agent.sysPrompt", "sysPrompt", "{{agent.sysPrompt}}", "AGENT"),
]


# ============================================================================
# Catalog
# ============================================================================


def build_catalog(
    definition: WorkflowDefinition,
    node_id: Optional[str],
    registry: Optional[NodeRegistry] = None,
) -> List[VariableRef]:
    """Variables insertable into a config field of ``node_id``.

    Global variables first, then one entry per other node whose kind
    declares an output variable, in node order. The edited node itself
    is skipped; reachability is not considered.
    """
    reg = registry or get_node_registry()
    catalog = list(GLOBAL_VARIABLES)
    for node in definition.nodes:
        if node.id == node_id:
            continue
        output = reg.output_variable(node.type)
        if output is None:
            continue
        label = node.data.label
        catalog.append(VariableRef(
            id=f"{node.id}.{output.field}",
            label=f"{label or output.display_fallback}.{output.field}",
            value=f"{{{{{label or output.value_fallback}.{output.field}}}}}",
            group=output.group,
            type=output.type,
            node_id=node.id,
        ))
    return catalog


def group_catalog(catalog: List[VariableRef]) -> Dict[str, List[VariableRef]]:
    """Group by ``group`` tag in menu order; unknown groups go last."""
    grouped: Dict[str, List[VariableRef]] = {}
    for group in GROUP_ORDER:
        items = [v for v in catalog if v.group == group]
        if items:
            grouped[group] = items
    for var in catalog:
        if var.group not in GROUP_ORDER:
            grouped.setdefault(var.group, []).append(var)
    return grouped


def filter_catalog(catalog: List[VariableRef], query: str) -> List[VariableRef]:
    """Case-insensitive filter on label, id and template.

    Prefix matches come before substring matches; catalog order is
    kept within each bucket. An empty query returns everything.
    """
    q = query.strip().lower()
    if not q:
        return list(catalog)
    prefix: List[VariableRef] = []
    contains: List[VariableRef] = []
    for var in catalog:
        haystacks = (var.label.lower(), var.id.lower(), var.value.lower())
        if any(h.startswith(q) for h in haystacks[:2]):
            prefix.append(var)
        elif any(q in h for h in haystacks):
            contains.append(var)
    return prefix + contains


def find_references(text: str) -> List[str]:
    """Names referenced as ``{{name}}`` in ``text``, in order of appearance."""
    return [m.group(1) for m in _TEMPLATE_RE.finditer(text or "")]


# ============================================================================
# Insertion
# ============================================================================


@dataclass(frozen=True)
class InsertionResult:
    value: str
    cursor: int


def is_trigger(text: str, cursor: int) -> bool:
    """True if the character just before ``cursor`` is a trigger."""
    return 0 < cursor <= len(text) and text[cursor - 1] in TRIGGER_CHARS


def insert_variable(
    text: str,
    trigger_offset: int,
    cursor_offset: int,
    template: str,
) -> InsertionResult:
    """Replace ``text[trigger_offset - 1:cursor_offset]`` with ``template``.

    ``trigger_offset`` is the caret position right after the trigger
    character was typed, so the trigger itself and any filter text
    typed since are replaced. The new caret sits right after the
    inserted template. Out-of-range offsets are clamped.
    """
    text = text or ""
    trigger_offset = max(1, min(trigger_offset, len(text))) if text else 0
    cursor_offset = max(trigger_offset, min(cursor_offset, len(text)))
    start = max(trigger_offset - 1, 0)
    value = text[:start] + template + text[cursor_offset:]
    return InsertionResult(value=value, cursor=start + len(template))


class SuggestionSession:
    """Tracks one open variable menu for a single text field.

    Feed every edit of any field through ``on_input``; the session
    opens when a trigger is typed, narrows its filter as the user keeps
    typing, and closes when the caret moves before the trigger or a
    variable is accepted.
    """

    def __init__(self) -> None:
        self.field: Optional[str] = None
        self.trigger_offset: int = 0
        self.query: str = ""
        self.active = False

    def on_input(self, field: str, text: str, cursor: int) -> bool:
        """Process an edit; returns whether the menu is open afterwards."""
        if is_trigger(text, cursor):
            self.field = field
            self.trigger_offset = cursor
            self.query = ""
            self.active = True
        elif self.active and field == self.field:
            if cursor < self.trigger_offset:
                self.close()
            else:
                self.query = text[self.trigger_offset:cursor]
        return self.active

    def suggestions(self, catalog: List[VariableRef]) -> List[VariableRef]:
        if not self.active:
            return []
        return filter_catalog(catalog, self.query)

    def accept(self, text: str, cursor: int, variable: VariableRef) -> InsertionResult:
        """Insert ``variable`` into ``text`` and close the menu."""
        if not self.active:
            return InsertionResult(value=text, cursor=cursor)
        result = insert_variable(text, self.trigger_offset, cursor, variable.value)
        self.close()
        return result

    def close(self) -> None:
        self.field = None
        self.trigger_offset = 0
        self.query = ""
        self.active = False


# ============================================================================
# Field addressing
# ============================================================================
#
# Editable text fields are addressed by a dotted path into the node
# config ("systemPrompt", "messages.2.content", "conditions.0.inputValue").
# The property panel's "message-<i>" / "param-desc-<i>" ids are accepted
# as aliases.

_FIELD_ALIASES = {
    "message-": ("messages", "content"),
    "param-desc-": ("parameters", "description"),
}


def _parse_field(field: str) -> List[Any]:
    for prefix, (container, attr) in _FIELD_ALIASES.items():
        suffix = field[len(prefix):]
        if field.startswith(prefix) and suffix.isdigit():
            return [container, int(suffix), attr]
    parts: List[Any] = []
    for part in field.split("."):
        parts.append(int(part) if part.isdigit() else part)
    return parts


def read_field(config: Dict[str, Any], field: str) -> Optional[str]:
    """Current text of ``field`` in ``config``; ``None`` if it does not exist."""
    try:
        current: Any = config
        for key in _parse_field(field):
            current = current[key]
    except (KeyError, IndexError, TypeError, ValueError):
        return None
    if current is None:
        return ""
    return current if isinstance(current, str) else str(current)


def write_field(config: Dict[str, Any], field: str, value: str) -> Tuple[Dict[str, Any], str]:
    """Return a copy of ``config`` with ``field`` set, plus the top-level key touched.

    Containers along the path are copied; missing dict keys are created.

    Raises:
        KeyError: the path runs through a missing list item or a non-container
    """
    path = _parse_field(field)
    top = path[0]

    def _set(container: Any, keys: List[Any]) -> Any:
        key = keys[0]
        if isinstance(container, list):
            if not isinstance(key, int) or not 0 <= key < len(container):
                raise KeyError(field)
            clone: Any = list(container)
        elif isinstance(container, dict) or container is None:
            clone = dict(container or {})
        else:
            raise KeyError(field)
        if len(keys) == 1:
            clone[key] = value
        else:
            child = clone[key] if isinstance(clone, list) else clone.get(key)
            clone[key] = _set(child, keys[1:])
        return clone

    new_config = _set(config, path)
    return new_config, str(top)
