"""
Knowledge Nodes — retrieval over the console's knowledge bases.
"""

from __future__ import annotations

from typing import Any, Dict, List

from agentdesk.workflow.nodes.base import (
    BaseNode,
    ConfigIssue,
    NodeParameter,
    OutputPort,
    OutputVariable,
    register_node,
)

QUERY_SOURCES = [
    {"value": "userMessage", "label": "User Message"},
    {"value": "lastOutput", "label": "Last Node Output"},
]


def _query_source_param() -> NodeParameter:
    return NodeParameter(
        name="querySource",
        label="Query Source",
        type="select",
        default="userMessage",
        options=QUERY_SOURCES,
    )


@register_node
class KnowledgeNode(BaseNode):
    """Retrieve from one or more knowledge bases; exposes ``<label>.result``.

    Older configs hold a single ``knowledgeBaseId`` instead of the
    ``knowledgeBaseIds`` list; both are accepted.
    """

    node_type = "knowledge"
    label = "Knowledge Retrieval"
    description = "Retrieve relevant passages from knowledge bases"
    category = "knowledge"
    icon = "📚"
    color = "#3b82f6"

    parameters = [
        NodeParameter(
            name="knowledgeBaseIds",
            label="Knowledge Bases",
            type="knowledge_base",
            default=[],
            required=True,
        ),
        NodeParameter(
            name="selectedKnowledgeBases",
            label="Selected Knowledge Bases",
            type="list",
            default=[],
            description="Display copies ({id, name}) of the selected knowledge bases.",
        ),
        _query_source_param(),
    ]

    output_ports = [OutputPort(id="default", label="Next")]
    output_variable = OutputVariable(
        field="result", group="KNOWLEDGE", display_fallback="Retrieval", value_fallback="Knowledge",
    )

    def validate_config(self, config: Dict[str, Any]) -> List[ConfigIssue]:
        issues = super().validate_config(config)
        if config.get("knowledgeBaseId"):
            issues = [i for i in issues if i.field != "knowledgeBaseIds"]
        return issues


@register_node
class KnowledgeSearchNode(BaseNode):
    """Search a single knowledge base; exposes ``<label>.result``."""

    node_type = "kb_search"
    label = "Knowledge Search"
    description = "Search one knowledge base"
    category = "knowledge"
    icon = "🔍"
    color = "#2563eb"

    parameters = [
        NodeParameter(
            name="knowledgeBaseId",
            label="Knowledge Base",
            type="knowledge_base",
            required=True,
        ),
        NodeParameter(
            name="selectedKnowledgeBase",
            label="Selected Knowledge Base",
            type="json",
            description="Display copy ({id, name}) of the selected knowledge base.",
        ),
        _query_source_param(),
    ]

    output_ports = [OutputPort(id="default", label="Next")]
    output_variable = OutputVariable(
        field="result", group="KNOWLEDGE", display_fallback="Search", value_fallback="Search",
    )


@register_node
class ImageTextSplitNode(BaseNode):
    """Split an uploaded image into text blocks (OCR) for later nodes."""

    node_type = "imageTextSplit"
    label = "Image Text Split"
    description = "Extract text from images attached to the message"
    category = "knowledge"
    icon = "🖼️"
    color = "#0ea5e9"

    parameters = [
        NodeParameter(
            name="source",
            label="Image Source",
            type="prompt_template",
            default="{{sys.files}}",
        ),
    ]

    output_ports = [OutputPort(id="default", label="Next")]
