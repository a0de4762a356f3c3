"""Shared pytest fixtures for testing."""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest
import pytest_asyncio

from agentdesk.api import AiTool, ConsoleClient, LlmModel
from agentdesk.config import ConsoleAPIConfig, WorkflowEditorConfig, reset_config_cache
from agentdesk.workflow import (
    EditorCache,
    WorkflowDefinition,
    WorkflowEditor,
    WorkflowEdge,
    WorkflowNode,
    register_all_nodes,
)
from agentdesk.workflow.workflow_model import NodeData, Position


API_PREFIX = "/api/v1"


def ok(data: Any) -> Dict[str, Any]:
    """Wrap ``data`` in the console's success envelope."""
    return {"code": 200, "message": "success", "data": data}


def make_node(
    node_id: str,
    node_type: str,
    label: str = "",
    config: Optional[Dict[str, Any]] = None,
    x: float = 0.0,
    y: float = 0.0,
) -> WorkflowNode:
    return WorkflowNode(
        id=node_id,
        type=node_type,
        position=Position(x=x, y=y),
        data=NodeData(label=label, config=config or {}),
    )


def make_edge(source: str, target: str, handle: Optional[str] = None, edge_id: str = "") -> WorkflowEdge:
    return WorkflowEdge(id=edge_id, source=source, target=target, source_handle=handle)


# =============================================================================
# Fake console backend
# =============================================================================

Responder = Union[Dict[str, Any], List[Any], None, Callable[[httpx.Request], httpx.Response]]


class FakeConsole:
    """Routes requests by (method, path) and records what was sent."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Responder] = {}
        self.status: Dict[Tuple[str, str], int] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, body: Responder = None, status: int = 200) -> None:
        key = (method.upper(), API_PREFIX + path)
        self.routes[key] = body
        self.status[key] = status

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        full = API_PREFIX + path
        return [r for r in self.requests if r.method == method.upper() and r.url.path == full]

    def last_json(self, method: str, path: str) -> Any:
        return json.loads(self.calls(method, path)[-1].content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"message": f"no route for {key}"})
        body = self.routes[key]
        if callable(body):
            return body(request)
        status = self.status[key]
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)


@pytest.fixture
def console() -> FakeConsole:
    return FakeConsole()


@pytest_asyncio.fixture
async def client(console: FakeConsole):
    config = ConsoleAPIConfig(base_url="http://console.test", api_token="secret-token")
    api = ConsoleClient(config=config, transport=httpx.MockTransport(console.handler))
    yield api
    await api.close()


# =============================================================================
# Registry / editor fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    """Each test sees default config sections, unaffected by the environment."""
    for var in ("AGENTDESK_BASE_URL", "AGENTDESK_API_TOKEN", "AGENTDESK_LAYOUT_DIRECTION"):
        monkeypatch.delenv(var, raising=False)
    reset_config_cache()
    yield
    reset_config_cache()


@pytest.fixture
def registry():
    return register_all_nodes()


@pytest.fixture
def models() -> List[LlmModel]:
    return [
        LlmModel(id="m-gpt4o", name="GPT-4o", provider="openai", model_name="gpt-4o", sort_order=2),
        LlmModel(id="m-gpt5", name="GPT-5 Preview", provider="openai", model_name="gpt-5-preview", sort_order=1),
        LlmModel(id="m-off", name="Retired", provider="openai", model_name="old", enabled=False),
    ]


@pytest.fixture
def tools() -> List[AiTool]:
    return [
        AiTool(id="t-order", name="order_lookup", display_name="Order Lookup"),
        AiTool(id="t-raw", name="raw_tool"),
    ]


@pytest.fixture
def cache(models, tools) -> EditorCache:
    return EditorCache(models=models, tools=tools)


@pytest.fixture
def editor_config() -> WorkflowEditorConfig:
    return WorkflowEditorConfig()


@pytest.fixture
def editor(registry, cache, editor_config) -> WorkflowEditor:
    return WorkflowEditor(
        WorkflowDefinition(id="wf-1", name="Support"),
        registry=registry,
        cache=cache,
        config=editor_config,
    )


@pytest.fixture
def intent_graph() -> WorkflowDefinition:
    """start(s1) → intent(i1) ─[greet]→ reply(r1)."""
    return WorkflowDefinition(
        id="wf-intent",
        name="Intent routing",
        nodes=[
            make_node("s1", "start", "Start"),
            make_node("i1", "intent", "Router", {
                "modelId": "m-gpt4o",
                "intents": [{"id": "greet", "label": "Greeting"}],
            }),
            make_node("r1", "reply", "Hello", {"text": "Hi there"}),
        ],
        edges=[
            make_edge("s1", "i1", edge_id="e1"),
            make_edge("i1", "r1", handle="greet", edge_id="e2"),
        ],
    )
