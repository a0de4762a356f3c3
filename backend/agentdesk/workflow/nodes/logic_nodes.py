"""
Logic Nodes — branching, tool execution, state updates and sub-flows.

None of these call an LLM directly. ``condition`` and ``tool`` own
named outgoing branches; the rest are linear pass-throughs.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from agentdesk.workflow.nodes.base import (
    BaseNode,
    ConfigIssue,
    config_list,
    NodeParameter,
    OutputPort,
    register_node,
)

if TYPE_CHECKING:
    from agentdesk.workflow.editor_cache import EditorCache

logger = getLogger(__name__)

ELSE_HANDLE = "else"
TOOL_EXECUTED = "executed"
TOOL_NOT_EXECUTED = "not_executed"

CONDITION_TYPES = [
    "contains",
    "notContains",
    "startsWith",
    "endsWith",
    "equals",
    "notEquals",
    "isEmpty",
    "isNotEmpty",
    "gt",
    "lt",
    "gte",
    "lte",
]

# Operators that take no right-hand operand.
UNARY_CONDITION_TYPES = {"isEmpty", "isNotEmpty"}


def _key_value_issues(field: str, items: List[Any], key: str) -> List[ConfigIssue]:
    issues = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict) or not str(item.get(key, "")).strip():
            issues.append(ConfigIssue(field, f"Row #{idx + 1} has no {key}"))
    return issues


# ============================================================================
# Condition
# ============================================================================


@register_node
class ConditionNode(BaseNode):
    """If / else-if / else branching over templated operands.

    Conditions are evaluated in order; each has its own handle and the
    ``else`` handle is always present as the last branch.
    """

    node_type = "condition"
    label = "Condition"
    description = "Branch on comparisons of variables"
    category = "logic"
    icon = "🔀"
    color = "#6366f1"

    parameters = [
        NodeParameter(
            name="conditions",
            label="Conditions",
            type="list",
            default=[],
            description=(
                "Each item: {id, sourceValue, conditionType, inputValue}. "
                "inputValue is not used by isEmpty / isNotEmpty."
            ),
            options=[{"value": t, "label": t} for t in CONDITION_TYPES],
            group="routing",
        ),
    ]

    output_ports = [OutputPort(id=ELSE_HANDLE, label="Else")]
    dynamic_outputs = True
    named_outputs = True

    def get_dynamic_output_ports(self, config: Dict[str, Any]) -> List[OutputPort]:
        ports = []
        for idx, cond in enumerate(config_list(config, "conditions")):
            if isinstance(cond, dict) and cond.get("id") and cond["id"] != ELSE_HANDLE:
                label = "IF" if idx == 0 else "ELIF"
                ports.append(OutputPort(id=str(cond["id"]), label=label))
        ports.append(OutputPort(id=ELSE_HANDLE, label="Else"))
        return ports

    def validate_config(self, config: Dict[str, Any]) -> List[ConfigIssue]:
        issues = super().validate_config(config)
        for idx, cond in enumerate(config_list(config, "conditions")):
            where = f"Condition #{idx + 1}"
            if not isinstance(cond, dict):
                issues.append(ConfigIssue("conditions", f"{where} is malformed"))
                continue
            if not cond.get("id"):
                issues.append(ConfigIssue("conditions", f"{where} is missing an id"))
            elif cond["id"] == ELSE_HANDLE:
                issues.append(ConfigIssue("conditions", f"{where} uses the reserved id 'else'"))
            if not str(cond.get("sourceValue") or "").strip():
                issues.append(ConfigIssue("conditions", f"{where} needs a value to compare"))
            ctype = cond.get("conditionType")
            if ctype not in CONDITION_TYPES:
                issues.append(ConfigIssue("conditions", f"{where} has unknown operator '{ctype}'"))
            elif ctype not in UNARY_CONDITION_TYPES and not str(cond.get("inputValue") or "").strip():
                issues.append(ConfigIssue("conditions", f"{where} needs a comparison value"))
        return issues


# ============================================================================
# Tool
# ============================================================================


@register_node
class ToolNode(BaseNode):
    """Execute the selected tool if it matches, else skip."""

    node_type = "tool"
    label = "Tool Execution"
    description = "Execute a tool if matched, otherwise take the skip branch"
    category = "logic"
    icon = "🔨"
    color = "#f97316"

    parameters = [
        NodeParameter(
            name="toolId",
            label="Tool",
            type="tool",
            required=True,
            group="tools",
        ),
    ]

    output_ports = [
        OutputPort(id=TOOL_EXECUTED, label="Executed", description="Tool matched and ran"),
        OutputPort(id=TOOL_NOT_EXECUTED, label="Not Executed", description="Tool was skipped"),
    ]
    named_outputs = True

    def on_config_patch(
        self,
        config: Dict[str, Any],
        patch: Dict[str, Any],
        cache: Optional["EditorCache"],
    ) -> Dict[str, Any]:
        if "toolId" not in patch or cache is None:
            return {}
        tool = cache.get_tool(patch["toolId"])
        return {"toolName": tool.title if tool else ""}


# ============================================================================
# Variable assignment
# ============================================================================


@register_node
class VariableNode(BaseNode):
    """Assign template values to named workflow variables."""

    node_type = "variable"
    label = "Variable"
    description = "Set workflow variables from templates"
    category = "logic"
    icon = "📝"
    color = "#0891b2"

    parameters = [
        NodeParameter(
            name="assignments",
            label="Assignments",
            type="list",
            default=[],
            description="Each item: {name, value}; value may reference variables.",
        ),
    ]

    output_ports = [OutputPort(id="default", label="Next")]

    def validate_config(self, config: Dict[str, Any]) -> List[ConfigIssue]:
        issues = super().validate_config(config)
        issues.extend(_key_value_issues("assignments", config_list(config, "assignments"), "name"))
        return issues


@register_node
class SetSessionMetadataNode(BaseNode):
    """Write key/value pairs onto the live conversation session."""

    node_type = "setSessionMetadata"
    label = "Set Session Metadata"
    description = "Store values on the conversation session"
    category = "logic"
    icon = "🏷️"
    color = "#0891b2"

    parameters = [
        NodeParameter(
            name="metadata",
            label="Metadata",
            type="list",
            default=[],
            description="Each item: {key, value}; value may reference variables.",
        ),
    ]

    output_ports = [OutputPort(id="default", label="Next")]

    def validate_config(self, config: Dict[str, Any]) -> List[ConfigIssue]:
        issues = super().validate_config(config)
        issues.extend(_key_value_issues("metadata", config_list(config, "metadata"), "key"))
        return issues


# ============================================================================
# Sub-workflows
# ============================================================================


@register_node
class FlowNode(BaseNode):
    """Run another saved workflow as a sub-flow."""

    node_type = "flow"
    label = "Sub-Workflow"
    description = "Execute another workflow"
    category = "flow"
    icon = "🔗"
    color = "#a855f7"

    parameters = [
        NodeParameter(
            name="workflowId",
            label="Workflow",
            type="workflow",
            required=True,
        ),
        NodeParameter(
            name="workflowName",
            label="Workflow Name",
            type="string",
            default="",
            description="Display copy of the selected workflow's name.",
        ),
    ]

    output_ports = [OutputPort(id="default", label="Next")]


@register_node
class FlowUpdateNode(BaseNode):
    """Update the calling flow's state from inside a sub-flow."""

    node_type = "flow_update"
    label = "Flow Update"
    description = "Update the calling workflow's state"
    category = "flow"
    icon = "✏️"
    color = "#eab308"

    parameters = [
        NodeParameter(
            name="updates",
            label="Updates",
            type="list",
            default=[],
            description="Each item: {key, value}.",
        ),
    ]

    output_ports = [OutputPort(id="default", label="Next")]

    def validate_config(self, config: Dict[str, Any]) -> List[ConfigIssue]:
        issues = super().validate_config(config)
        issues.extend(_key_value_issues("updates", config_list(config, "updates"), "key"))
        return issues


@register_node
class AgentUpdateNode(BaseNode):
    node_type = "agent_update"
    label = "Agent Update"
    description = "Update the agent's state and continue"
    category = "flow"
    icon = "✏️"
    color = "#eab308"

    parameters: List[NodeParameter] = []
    output_ports = [OutputPort(id="default", label="Next")]
