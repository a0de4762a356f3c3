"""
API resources used by the workflow core.

Each resource wraps one area of the console REST surface and turns
raw response data into wire models.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from agentdesk.api.models import (
    AiTool,
    ElPreview,
    GeneratedWorkflow,
    LlmModel,
    ValidationResponse,
    WorkflowPayload,
    WorkflowTestSession,
)

if TYPE_CHECKING:
    from agentdesk.api.client import ConsoleClient


class BaseResource:
    """Base class for API resources."""

    def __init__(self, client: "ConsoleClient") -> None:
        self._client = client


class WorkflowsResource(BaseResource):
    """Workflow definitions, models, tools and the graph generator."""

    async def get(self, workflow_id: str) -> WorkflowPayload:
        data = await self._client.get(f"/ai-workflows/{workflow_id}")
        return WorkflowPayload.model_validate(data)

    async def update(self, workflow_id: str, payload: WorkflowPayload) -> WorkflowPayload:
        body = {
            "name": payload.name,
            "description": payload.description or "",
            "nodesJson": payload.nodes_json,
            "edgesJson": payload.edges_json,
            "categoryIds": list(payload.category_ids or []),
        }
        data = await self._client.put(f"/ai-workflows/{workflow_id}", json=body)
        if not data:
            return payload
        return WorkflowPayload.model_validate(data)

    async def validate(self, nodes_json: str, edges_json: str) -> ValidationResponse:
        data = await self._client.post(
            "/ai-workflows/validate",
            json={"nodesJson": nodes_json, "edgesJson": edges_json},
        )
        return ValidationResponse.model_validate(data)

    async def preview_el(self, nodes_json: str, edges_json: str) -> ElPreview:
        data = await self._client.post(
            "/ai-workflows/preview-el",
            json={"nodesJson": nodes_json, "edgesJson": edges_json},
        )
        return ElPreview.model_validate(data)

    async def get_categories(self, workflow_id: str) -> List[str]:
        data = await self._client.get(f"/ai-workflows/{workflow_id}/categories")
        return [str(c) for c in (data or [])]

    async def generate(
        self,
        prompt: str,
        model_id: str,
        existing_nodes_json: Optional[str] = None,
        existing_edges_json: Optional[str] = None,
    ) -> GeneratedWorkflow:
        body: Dict[str, Any] = {"prompt": prompt, "modelId": model_id}
        if existing_nodes_json is not None:
            body["existingNodesJson"] = existing_nodes_json
        if existing_edges_json is not None:
            body["existingEdgesJson"] = existing_edges_json
        data = await self._client.post("/workflow-generator/generate", json=body)
        return GeneratedWorkflow.model_validate(data)

    async def list_enabled_models(self) -> List[LlmModel]:
        data = await self._client.get("/llm-models/enabled")
        return [LlmModel.model_validate(m) for m in (data or [])]

    async def list_tools(self, keyword: Optional[str] = None) -> List[AiTool]:
        params = {"keyword": keyword} if keyword else None
        data = await self._client.get("/tools", params=params)
        return [AiTool.model_validate(t) for t in (data or [])]


class WorkflowTestsResource(BaseResource):
    """Sandbox test sessions for saved workflows."""

    async def create_session(
        self,
        workflow_id: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> WorkflowTestSession:
        body: Dict[str, Any] = {"workflowId": workflow_id}
        if variables:
            body["variables"] = variables
        data = await self._client.post("/workflow-test/sessions", json=body)
        return WorkflowTestSession.model_validate(data)

    async def send_message(
        self,
        session_id: str,
        message: str,
        workflow_id: Optional[str] = None,
    ) -> WorkflowTestSession:
        body: Dict[str, Any] = {"message": message}
        if workflow_id:
            body["workflowId"] = workflow_id
        data = await self._client.post(
            f"/workflow-test/sessions/{session_id}/messages", json=body,
        )
        return WorkflowTestSession.model_validate(data)

    async def clear_history(self, session_id: str) -> WorkflowTestSession:
        data = await self._client.post(f"/workflow-test/sessions/{session_id}/clear")
        return WorkflowTestSession.model_validate(data)

    async def get_session(self, session_id: str) -> WorkflowTestSession:
        data = await self._client.get(f"/workflow-test/sessions/{session_id}")
        return WorkflowTestSession.model_validate(data)

    async def update_variables(
        self, session_id: str, variables: Dict[str, Any],
    ) -> WorkflowTestSession:
        data = await self._client.put(
            f"/workflow-test/sessions/{session_id}/variables", json=variables,
        )
        return WorkflowTestSession.model_validate(data)

    async def delete_session(self, session_id: str) -> None:
        await self._client.delete(f"/workflow-test/sessions/{session_id}")
