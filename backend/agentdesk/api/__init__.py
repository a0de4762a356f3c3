"""
Console API package.

Async REST client for the support-console backend endpoints that the
workflow core consumes.
"""

from agentdesk.api.client import ConsoleClient
from agentdesk.api.exceptions import (
    AuthenticationError,
    ConsoleAPIError,
    EnvelopeError,
    NotFoundError,
    ServerError,
    TransportError,
    ValidationError,
)
from agentdesk.api.models import (
    AiTool,
    ElPreview,
    GeneratedWorkflow,
    LlmModel,
    NodeDetail,
    TestMessage,
    TestMessageMeta,
    ToolExecution,
    ValidationResponse,
    WorkflowPayload,
    WorkflowTestSession,
)

__all__ = [
    "ConsoleClient",
    # Exceptions
    "ConsoleAPIError",
    "AuthenticationError",
    "NotFoundError",
    "ValidationError",
    "ServerError",
    "TransportError",
    "EnvelopeError",
    # Models
    "AiTool",
    "ElPreview",
    "GeneratedWorkflow",
    "LlmModel",
    "NodeDetail",
    "TestMessage",
    "TestMessageMeta",
    "ToolExecution",
    "ValidationResponse",
    "WorkflowPayload",
    "WorkflowTestSession",
]
