"""
Entry & Terminal Nodes — where a conversation enters and leaves a workflow.

``start`` is the single entry point. ``end``, ``flow_end``, ``agent_end``,
``human_transfer`` and ``reply`` have no outgoing connector; a turn that
reaches one of them finishes there.
"""

from __future__ import annotations

from typing import List

from agentdesk.workflow.nodes.base import (
    BaseNode,
    NodeParameter,
    OutputPort,
    register_node,
)


@register_node
class StartNode(BaseNode):
    """Entry point. Receives ``sys.query`` / ``sys.files`` for the turn."""

    node_type = "start"
    label = "Start"
    description = "Workflow entry point; receives the user's message"
    category = "flow"
    icon = "▶️"
    color = "#10b981"

    inputs = 0
    parameters: List[NodeParameter] = []
    output_ports = [OutputPort(id="default", label="Next")]


@register_node
class EndNode(BaseNode):
    node_type = "end"
    label = "End"
    description = "End the workflow for this turn"
    category = "flow"
    icon = "⏹️"
    color = "#6b7280"

    parameters: List[NodeParameter] = []
    output_ports: List[OutputPort] = []


@register_node
class FlowEndNode(BaseNode):
    """Return control from a sub-workflow to its caller."""

    node_type = "flow_end"
    label = "Flow End"
    description = "End of a sub-workflow; control returns to the calling workflow"
    category = "flow"
    icon = "⏏️"
    color = "#6b7280"

    parameters: List[NodeParameter] = []
    output_ports: List[OutputPort] = []


@register_node
class AgentEndNode(BaseNode):
    """Finish the current agent execution."""

    node_type = "agent_end"
    label = "Agent End"
    description = "End of an agent execution"
    category = "flow"
    icon = "⏹️"
    color = "#6b7280"

    parameters: List[NodeParameter] = []
    output_ports: List[OutputPort] = []


@register_node
class HumanTransferNode(BaseNode):
    node_type = "human_transfer"
    label = "Transfer to Human"
    description = "Hand the conversation over to a human agent"
    category = "flow"
    icon = "🎧"
    color = "#ec4899"

    parameters = [
        NodeParameter(
            name="transferMessage",
            label="Transfer Message",
            type="prompt_template",
            default="",
            description="Optional message shown to the customer before the handover.",
            placeholder="Type '/' to insert variable...",
        ),
    ]
    output_ports: List[OutputPort] = []


@register_node
class ReplyNode(BaseNode):
    """Send a fixed (templated) reply and finish the turn."""

    node_type = "reply"
    label = "Reply"
    description = "Reply to the user with a fixed text"
    category = "flow"
    icon = "💬"
    color = "#0ea5e9"

    parameters = [
        NodeParameter(
            name="text",
            label="Reply Text",
            type="prompt_template",
            default="",
            description="Leave empty to reply with the previous node's output.",
            placeholder="Enter reply text...",
        ),
    ]
    output_ports: List[OutputPort] = []
