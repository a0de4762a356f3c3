"""
Starter Workflow Templates.

Factory functions returning ready-made ``WorkflowDefinition`` objects:
the blank graph a newly created workflow opens with, and a small
customer-service flow that exercises intent routing, knowledge
retrieval and human transfer.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from agentdesk.workflow.workflow_model import (
    NodeData,
    Position,
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
)


# ============================================================================
# Blank Template
# ============================================================================


def create_blank_template(name: str = "Untitled Workflow") -> WorkflowDefinition:
    """A single Start node, as a freshly created workflow."""
    return WorkflowDefinition(
        name=name,
        nodes=[
            WorkflowNode(
                id="start", type="start",
                position=Position(x=100, y=200),
                data=NodeData(label="Start"),
            ),
        ],
    )


# ============================================================================
# Customer Service Template
# ============================================================================


def create_customer_service_template(model_id: Optional[str] = None) -> WorkflowDefinition:
    """Route a customer question by intent.

    Topology::
        start → intent ─[greeting]──▶ reply (greeting)
                       ├[question]──▶ knowledge → llm → reply (answer)
                       └[human]─────▶ human_transfer

    Positions are left at the origin; run the layout before display.
    """
    nodes: List[WorkflowNode] = []
    edges: List[WorkflowEdge] = []

    def _add(ntype: str, nid: str, label: str, cfg: Optional[Dict[str, Any]] = None) -> None:
        nodes.append(WorkflowNode(id=nid, type=ntype, data=NodeData(label=label, config=cfg or {})))

    def _edge(src: str, tgt: str, handle: Optional[str] = None) -> None:
        edges.append(WorkflowEdge(source=src, target=tgt, source_handle=handle))

    model = {"modelId": model_id} if model_id else {}

    _add("start", "start", "Start")
    _add("intent", "router", "Router", {
        **model,
        "historyCount": 3,
        "intents": [
            {"id": "greeting", "label": "Greeting"},
            {"id": "question", "label": "Product question"},
            {"id": "human", "label": "Talk to a person"},
        ],
    })
    _add("reply", "greet", "Greeting", {"text": "Hello! How can I help you today?"})
    _add("knowledge", "kb", "FAQ", {"knowledgeBaseIds": [], "querySource": "userMessage"})
    _add("llm", "answer", "Answer", {
        **model,
        "systemPrompt": "Answer the customer using only this context:\n{{FAQ.result}}",
        "temperature": 0.3,
        "useHistory": True,
        "readCount": 10,
    })
    _add("reply", "respond", "Respond", {"text": "{{Answer.text}}"})
    _add("human_transfer", "handoff", "Handoff", {
        "transferMessage": "Connecting you with a member of our team.",
    })

    _edge("start", "router")
    _edge("router", "greet", "greeting")
    _edge("router", "kb", "question")
    _edge("router", "handoff", "human")
    _edge("kb", "answer")
    _edge("answer", "respond")

    return WorkflowDefinition(
        name="Customer Service",
        description="Greets, answers product questions from the FAQ, or hands over to a human.",
        nodes=nodes,
        edges=edges,
    )


# ============================================================================
# Template Registry
# ============================================================================

ALL_TEMPLATES: Dict[str, Callable[..., WorkflowDefinition]] = {
    "blank": create_blank_template,
    "customer_service": create_customer_service_template,
}


def get_template(name: str, **kwargs: Any) -> Optional[WorkflowDefinition]:
    factory = ALL_TEMPLATES.get(name)
    return factory(**kwargs) if factory else None
