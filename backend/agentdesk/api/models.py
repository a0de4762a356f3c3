"""
Wire models for the console backend.

Payload shapes of the endpoints the workflow core talks to. Field
names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for camelCase wire payloads; unknown keys are kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        protected_namespaces=(),
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Models & tools
# =============================================================================

class LlmModel(WireModel):
    """An LLM model configured in the console."""
    id: str
    name: str
    code: Optional[str] = None
    provider: str = ""
    model_type: Optional[str] = None  # CHAT | EMBEDDING
    model_name: str = ""
    default_temperature: Optional[float] = None
    default_max_tokens: Optional[int] = None
    context_window: Optional[int] = None
    supports_functions: Optional[bool] = None
    supports_vision: Optional[bool] = None
    enabled: bool = True
    is_default: Optional[bool] = None
    sort_order: Optional[int] = None
    description: Optional[str] = None


class AiTool(WireModel):
    """A callable tool that workflow nodes can reference."""
    id: str
    name: str = ""
    display_name: str = ""
    description: Optional[str] = None
    enabled: Optional[bool] = None

    @property
    def title(self) -> str:
        return self.display_name or self.name or self.id


# =============================================================================
# Workflows
# =============================================================================

class WorkflowPayload(WireModel):
    """``GET /ai-workflows/{id}`` response and ``PUT`` body."""
    id: Optional[str] = None
    name: Optional[str] = ""
    description: Optional[str] = ""
    nodes_json: Optional[str] = "[]"
    edges_json: Optional[str] = "[]"
    category_ids: Optional[List[str]] = None
    version: Optional[int] = None
    enabled: Optional[bool] = None
    is_default: Optional[bool] = None


class ValidationResponse(WireModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)


class ElPreview(WireModel):
    success: bool
    el: Optional[str] = None
    error: Optional[str] = None


class GeneratedWorkflow(WireModel):
    nodes_json: str = "[]"
    edges_json: str = "[]"


# =============================================================================
# Workflow test sessions
# =============================================================================

class ToolExecution(WireModel):
    """A tool call made while a node ran."""
    tool_name: str = ""
    args: Any = None
    result: Any = None
    duration_ms: int = 0
    success: bool = True
    error: Optional[str] = None


class NodeDetail(WireModel):
    """One step of the execution path taken for an assistant turn."""
    node_id: str
    node_type: str = ""
    input: Any = None
    output: Any = None
    duration_ms: int = 0
    success: bool = True
    error_message: Optional[str] = None
    tool_executions: List[ToolExecution] = Field(default_factory=list)


class TestMessageMeta(WireModel):
    __test__ = False

    success: bool = True
    duration_ms: int = 0
    error_message: Optional[str] = None
    need_human_transfer: bool = False
    node_details: List[NodeDetail] = Field(default_factory=list)


class TestMessage(WireModel):
    __test__ = False

    id: str
    role: Literal["user", "assistant", "system"]
    content: str = ""
    timestamp: Optional[str] = None
    meta: Optional[TestMessageMeta] = None

    # Client-side only: "sent" for server-confirmed messages,
    # "pending" / "failed" for optimistic ones.
    delivery: Literal["sent", "pending", "failed"] = Field(default="sent", exclude=True)
    delivery_error: Optional[str] = Field(default=None, exclude=True)

    @property
    def trace(self) -> List[NodeDetail]:
        return list(self.meta.node_details) if self.meta else []


class WorkflowTestSession(WireModel):
    test_session_id: str
    workflow_id: str = ""
    workflow_name: Optional[str] = None
    messages: List[TestMessage] = Field(default_factory=list)
    created_at: Optional[str] = None
    last_active_at: Optional[str] = None
