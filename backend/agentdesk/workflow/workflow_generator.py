"""
Workflow Generator — merge LLM-generated graphs into an editor session.

The console's generator endpoint returns ``nodesJson`` / ``edgesJson``
for a prompt. The result replaces the editor graph; model ids are
resolved to display names through the session's model cache, and the
graph is auto-laid-out when the generator placed every node at the
origin.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, List

from agentdesk.api.exceptions import ConsoleAPIError
from agentdesk.api.models import GeneratedWorkflow
from agentdesk.workflow.editor_cache import EditorCache
from agentdesk.workflow.workflow_model import (
    WorkflowNode,
    WorkflowSerializationError,
    deserialize_edges,
    deserialize_nodes,
)

if TYPE_CHECKING:
    from agentdesk.api.client import ConsoleClient
    from agentdesk.workflow.workflow_editor import OperationResult, WorkflowEditor

logger = getLogger(__name__)


def stamp_model_names(nodes: List[WorkflowNode], cache: EditorCache) -> int:
    """Fill ``model`` / ``modelDisplayName`` / ``provider`` from the cache.

    Only nodes whose ``modelId`` is cached and that carry no display
    name yet are touched. Returns how many nodes were stamped.
    """
    stamped = 0
    for node in nodes:
        config = node.data.config
        if config.get("modelDisplayName"):
            continue
        model = cache.get_model(config.get("modelId"))
        if model is None:
            continue
        config["model"] = model.model_name
        config["modelDisplayName"] = model.name
        config["provider"] = model.provider
        stamped += 1
    return stamped


def _unplaced(nodes: List[WorkflowNode]) -> bool:
    return bool(nodes) and all(n.position.x == 0 and n.position.y == 0 for n in nodes)


def merge_generated_workflow(editor: "WorkflowEditor", generated: GeneratedWorkflow) -> None:
    """Replace the editor graph with ``generated``.

    Raises:
        WorkflowSerializationError: the generator returned malformed JSON
    """
    nodes = deserialize_nodes(generated.nodes_json)
    edges = deserialize_edges(generated.edges_json)
    stamped = stamp_model_names(nodes, editor.cache)
    editor.replace_graph(nodes, edges)
    if _unplaced(nodes):
        editor.apply_layout()
    logger.info(
        f"Generated workflow merged: {len(nodes)} nodes / {len(edges)} edges "
        f"({stamped} model name(s) resolved)"
    )


async def generate_into(
    editor: "WorkflowEditor",
    client: "ConsoleClient",
    prompt: str,
    model_id: str,
    include_existing: bool = True,
) -> "OperationResult":
    """Ask the generator for a graph and merge it into ``editor``.

    With ``include_existing`` the current graph is sent along so the
    generator can refine it instead of starting over.
    """
    from agentdesk.workflow.workflow_editor import OperationResult

    if not prompt.strip() or not model_id:
        return OperationResult(ok=False, error="A prompt and a model are required")

    existing_nodes = existing_edges = None
    if include_existing and editor.nodes:
        existing_nodes = editor.definition.nodes_json()
        existing_edges = editor.definition.edges_json()

    try:
        if not editor.cache.models_loaded:
            editor.cache.set_models(await client.workflows.list_enabled_models())
        generated = await client.workflows.generate(
            prompt, model_id,
            existing_nodes_json=existing_nodes,
            existing_edges_json=existing_edges,
        )
    except ConsoleAPIError as e:
        logger.error(f"Workflow generation failed: {e}")
        return OperationResult(ok=False, error=str(e))

    try:
        merge_generated_workflow(editor, generated)
    except WorkflowSerializationError as e:
        logger.error(f"Generator returned an unusable graph: {e}")
        return OperationResult(ok=False, error=str(e))
    return OperationResult(ok=True, data=editor.definition)
