"""
Workflow Store — console-backed persistence for workflow definitions.

Loads and saves ``WorkflowDefinition``s through the console REST API.
Every outgoing graph goes through ``prepare_for_save`` first, so the
backend never receives dangling edges, stale branch handles or a
GPT-5 node below the temperature floor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, List, Optional

from agentdesk.api.exceptions import ConsoleAPIError
from agentdesk.api.models import ElPreview, ValidationResponse
from agentdesk.workflow.nodes.base import NodeRegistry
from agentdesk.workflow.workflow_model import WorkflowDefinition
from agentdesk.workflow.workflow_validator import (
    DEFAULT_MIN_TEMPERATURE,
    SavePreparation,
    prepare_for_save,
)

if TYPE_CHECKING:
    from agentdesk.api.client import ConsoleClient
    from agentdesk.workflow.editor_cache import EditorCache

logger = getLogger(__name__)


@dataclass
class SaveReport:
    """What a save sent and what it healed on the way."""

    workflow_id: str
    definition: WorkflowDefinition
    pruned_edge_ids: List[str] = field(default_factory=list)
    normalized_node_ids: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.pruned_edge_ids or self.normalized_node_ids)


class WorkflowStore:
    """Persist and load workflows via ``/ai-workflows``."""

    def __init__(
        self,
        client: "ConsoleClient",
        registry: Optional[NodeRegistry] = None,
        min_temperature: float = DEFAULT_MIN_TEMPERATURE,
    ) -> None:
        self._client = client
        self._registry = registry
        self._min_temperature = min_temperature

    # ── CRUD ──

    async def load(self, workflow_id: str) -> WorkflowDefinition:
        """Fetch and decode a workflow.

        Raises:
            ConsoleAPIError: the request failed
            WorkflowSerializationError: stored nodesJson/edgesJson is corrupt
        """
        payload = await self._client.workflows.get(workflow_id)
        if payload.category_ids is None:
            try:
                payload.category_ids = await self._client.workflows.get_categories(workflow_id)
            except ConsoleAPIError as e:
                logger.warning(f"Failed to fetch categories for workflow {workflow_id}: {e}")
                payload.category_ids = []
        if payload.id is None:
            payload.id = workflow_id
        definition = WorkflowDefinition.from_payload(payload)
        logger.info(
            f"Workflow loaded: {definition.name} ({workflow_id}), "
            f"{len(definition.nodes)} nodes / {len(definition.edges)} edges"
        )
        return definition

    async def save(
        self,
        definition: WorkflowDefinition,
        cache: Optional["EditorCache"] = None,
    ) -> SaveReport:
        """Normalise, prune and PUT ``definition``.

        Raises:
            ValueError: the workflow has no id yet
            ConsoleAPIError: the request failed
        """
        if not definition.id:
            raise ValueError("Workflow has no id; create it in the console first")
        prepared = self.prepare(definition, cache)
        await self._client.workflows.update(definition.id, prepared.definition.to_payload())
        logger.info(f"Workflow saved: {definition.name} ({definition.id})")
        return SaveReport(
            workflow_id=definition.id,
            definition=prepared.definition,
            pruned_edge_ids=prepared.pruned_edge_ids,
            normalized_node_ids=list(prepared.normalized_nodes),
        )

    async def validate(
        self,
        definition: WorkflowDefinition,
        cache: Optional["EditorCache"] = None,
    ) -> ValidationResponse:
        prepared = self.prepare(definition, cache).definition
        return await self._client.workflows.validate(prepared.nodes_json(), prepared.edges_json())

    async def preview_el(
        self,
        definition: WorkflowDefinition,
        cache: Optional["EditorCache"] = None,
    ) -> ElPreview:
        prepared = self.prepare(definition, cache).definition
        return await self._client.workflows.preview_el(prepared.nodes_json(), prepared.edges_json())

    # ── Internals ──

    def prepare(
        self,
        definition: WorkflowDefinition,
        cache: Optional["EditorCache"] = None,
    ) -> SavePreparation:
        return prepare_for_save(
            definition,
            cache=cache,
            registry=self._registry,
            min_temperature=self._min_temperature,
        )
